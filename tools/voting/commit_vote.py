from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path

from voteledger.audit import open_ledger
from voteledger.commitment import build_commit_and_reveal, secret_from_text
from voteledger.errors import ConfigError, EventLogError, VotingError


def main() -> int:
    ap = argparse.ArgumentParser(description="Commit a vote (commitment computed locally; only the hash is recorded)")
    ap.add_argument("--events", default=os.getenv("VOTELEDGER_EVENTS", ""), help="JSONL event log (env VOTELEDGER_EVENTS)")
    ap.add_argument("--voter", required=True)
    ap.add_argument("--candidate", required=True)
    g = ap.add_mutually_exclusive_group()
    g.add_argument("--secret-text", help="short text secret (<= 31 bytes), zero-padded to 32 bytes")
    g.add_argument("--secret-hex", help="32-byte secret as hex; random when neither secret option is given")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.INFO)
    if not args.events:
        raise SystemExit("--events (or VOTELEDGER_EVENTS) is required")

    try:
        secret = secret_from_text(args.secret_text) if args.secret_text is not None else args.secret_hex
        ledger = open_ledger(Path(args.events))
        commit, reveal = build_commit_and_reveal(
            candidate=args.candidate,
            voter=args.voter,
            secret=secret,
            alg=ledger.digest_alg,
        )
        ledger.commit_vote(args.voter, commit["commitment_hash"])
    except VotingError as e:
        raise SystemExit(f"commit rejected ({e.code}): {e.message}")
    except (ConfigError, EventLogError) as e:
        raise SystemExit(f"commit failed: {e}")

    # keep reveal["secret"] private until the reveal
    print(json.dumps({"commit": commit, "reveal": reveal}, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
