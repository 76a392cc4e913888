from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path

from voteledger.audit import open_ledger
from voteledger.config import load_config
from voteledger.errors import ConfigError, EventLogError


def main() -> int:
    ap = argparse.ArgumentParser(description="Open a commit-reveal voting ledger (writes ledger_opened to the event log)")
    ap.add_argument("--events", default=os.getenv("VOTELEDGER_EVENTS", ""), help="JSONL event log (env VOTELEDGER_EVENTS)")
    ap.add_argument("--config", help="YAML ledger config")
    ap.add_argument("--admin", help="administrator identity")
    ap.add_argument("--digest-alg", help="sha256 | sha3_256 | blake2b")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.INFO)

    try:
        config = load_config(
            Path(args.config) if args.config else None,
            administrator=args.admin,
            digest_alg=args.digest_alg,
            events_path=Path(args.events) if args.events else None,
        )
        if config.events_path is None:
            raise SystemExit("--events (or VOTELEDGER_EVENTS) is required")
        ledger = open_ledger(config.events_path, administrator=config.administrator, digest_alg=config.digest_alg)
    except (ConfigError, EventLogError) as e:
        raise SystemExit(f"open failed: {e}")

    print(json.dumps(ledger.snapshot(), indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
