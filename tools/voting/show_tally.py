from __future__ import annotations

import argparse
import json
import os
from pathlib import Path

from voteledger.audit import replay_events
from voteledger.errors import AuditError, EventLogError
from voteledger.events import read_events


def main() -> int:
    ap = argparse.ArgumentParser(description="Print ledger state rebuilt from the event log (read-only)")
    ap.add_argument("--events", default=os.getenv("VOTELEDGER_EVENTS", ""), help="JSONL event log (env VOTELEDGER_EVENTS)")
    ap.add_argument("--voter", help="print only this participant's record")
    args = ap.parse_args()

    if not args.events:
        raise SystemExit("--events (or VOTELEDGER_EVENTS) is required")

    try:
        ledger = replay_events(read_events(Path(args.events)))
    except (AuditError, EventLogError) as e:
        raise SystemExit(f"cannot read ledger: {e}")

    if args.voter:
        out = {"voter": args.voter, **ledger.commits(args.voter).to_dict()}
    else:
        out = ledger.snapshot()
    print(json.dumps(out, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
