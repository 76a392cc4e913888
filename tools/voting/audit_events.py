from __future__ import annotations

import argparse
import json
import os
from pathlib import Path

from voteledger.audit import write_audit_report
from voteledger.errors import AuditError, EventLogError


def main() -> int:
    ap = argparse.ArgumentParser(description="Audit a ledger event log by replaying every commit/reveal")
    ap.add_argument("--events", default=os.getenv("VOTELEDGER_EVENTS", ""), help="JSONL event log (env VOTELEDGER_EVENTS)")
    ap.add_argument("--outdir", required=True)
    ap.add_argument("--strict", action="store_true", help="fail on the first rejected event")
    args = ap.parse_args()

    if not args.events:
        raise SystemExit("--events (or VOTELEDGER_EVENTS) is required")

    try:
        rp = write_audit_report(events_path=Path(args.events), outdir=Path(args.outdir), strict=args.strict)
    except (AuditError, EventLogError) as e:
        raise SystemExit(f"Audit FAILED: {e}")

    report = json.loads(rp.read_text(encoding="utf-8"))
    print(f"Wrote audit: {rp}")
    if not report["passed"]:
        print(f"Audit found {len(report['violations'])} violation(s)")
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
