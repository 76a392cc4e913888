from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path

from voteledger.audit import open_ledger
from voteledger.commitment import secret_from_text
from voteledger.errors import ConfigError, EventLogError, VotingError


def main() -> int:
    ap = argparse.ArgumentParser(description="Reveal a committed vote (candidate + secret must match the commitment)")
    ap.add_argument("--events", default=os.getenv("VOTELEDGER_EVENTS", ""), help="JSONL event log (env VOTELEDGER_EVENTS)")
    ap.add_argument("--voter", required=True)
    ap.add_argument("--candidate", required=True)
    g = ap.add_mutually_exclusive_group(required=True)
    g.add_argument("--secret-text")
    g.add_argument("--secret-hex")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.INFO)
    if not args.events:
        raise SystemExit("--events (or VOTELEDGER_EVENTS) is required")

    try:
        secret = secret_from_text(args.secret_text) if args.secret_text is not None else args.secret_hex
        ledger = open_ledger(Path(args.events))
        count = ledger.reveal_vote(args.voter, args.candidate, secret)
    except VotingError as e:
        raise SystemExit(f"reveal rejected ({e.code}): {e.message}")
    except (ConfigError, EventLogError) as e:
        raise SystemExit(f"reveal failed: {e}")

    print(json.dumps({"candidate": args.candidate, "votes": count}, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
