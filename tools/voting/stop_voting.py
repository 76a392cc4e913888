from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path

from voteledger.audit import open_ledger
from voteledger.errors import ConfigError, EventLogError, VotingError


def main() -> int:
    ap = argparse.ArgumentParser(description="Stop the voting period (administrator only)")
    ap.add_argument("--events", default=os.getenv("VOTELEDGER_EVENTS", ""), help="JSONL event log (env VOTELEDGER_EVENTS)")
    ap.add_argument("--caller", required=True)
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.INFO)
    if not args.events:
        raise SystemExit("--events (or VOTELEDGER_EVENTS) is required")

    try:
        ledger = open_ledger(Path(args.events))
        changed = ledger.stop_voting(args.caller)
    except VotingError as e:
        raise SystemExit(f"stop rejected ({e.code}): {e.message}")
    except (ConfigError, EventLogError) as e:
        raise SystemExit(f"stop failed: {e}")

    print(json.dumps({"stopped": True, "changed": changed}, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
