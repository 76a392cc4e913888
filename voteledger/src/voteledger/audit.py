"""
Ledger audit v0.1 (replay)

Reads an event log and re-applies every event through the public operations
of a fresh VotingLedger, so each reveal is re-verified against its commitment
and every "one commit / one reveal per identity" rule is rechecked.

Reports:
  - participants committed / revealed / unrevealed
  - counts per candidate
  - violations (events the ledger rejects on replay)

Writes:
  outdir/audit.json
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import json
import logging

from voteledger.commitment import DEFAULT_DIGEST_ALG
from voteledger.config import LedgerConfig
from voteledger.errors import AuditError, ConfigError, EventLogError, VotingError
from voteledger.events import LEDGER_OPENED, EventLog, read_events
from voteledger.ledger import VotingLedger

logger = logging.getLogger(__name__)

AUDIT_SCHEMA_ID = "voteledger.audit.v0_1"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _violation(seq: Any, code: str, message: str) -> Dict[str, Any]:
    return {"seq": seq, "code": code, "message": message}


def _replay(
    events: Iterable[Dict[str, Any]],
    *,
    strict: bool,
    events_path: Optional[Path] = None,
) -> Tuple[VotingLedger, int, List[Dict[str, Any]]]:
    ledger: Optional[VotingLedger] = None
    seen = 0
    violations: List[Dict[str, Any]] = []

    def reject(v: Dict[str, Any]) -> None:
        if strict:
            raise AuditError(v)
        logger.warning("audit: skipping event seq=%s: %s", v["seq"], v["message"])
        violations.append(v)

    for event in events:
        seen += 1
        seq = event.get("seq")
        if ledger is None:
            if event.get("kind") != LEDGER_OPENED:
                raise EventLogError(f"event log must start with {LEDGER_OPENED}, got '{event.get('kind')}'")
            data = event["data"]
            try:
                config = LedgerConfig(
                    administrator=data["administrator"],
                    digest_alg=data["digest_alg"],
                    events_path=events_path,
                )
            except ConfigError as e:
                raise EventLogError(f"invalid {LEDGER_OPENED} event: {e}") from e
            ledger = VotingLedger(config)
            ledger.apply_event(event)
            continue

        if event.get("kind") == LEDGER_OPENED:
            reject(_violation(seq, "duplicate_open", f"{LEDGER_OPENED} after the first event"))
            continue

        try:
            ledger.apply_event(event)
        except VotingError as e:
            reject(_violation(seq, e.code, e.message))

    if ledger is None:
        raise EventLogError("event log is empty")
    return ledger, seen, violations


def replay_events(events: Iterable[Dict[str, Any]]) -> VotingLedger:
    """Strict replay: raises AuditError on the first event the ledger rejects."""
    ledger, _, _ = _replay(events, strict=True)
    return ledger


def audit_events(events: Iterable[Dict[str, Any]], *, strict: bool = False) -> Dict[str, Any]:
    ledger, seen, violations = _replay(events, strict=strict)

    records = ledger.participants()
    revealed = sum(1 for r in records.values() if r.revealed)

    return {
        "version": 1,
        "schema_id": AUDIT_SCHEMA_ID,
        "created_at": _utc_now_iso(),
        "passed": not violations,
        "events": {"seen": seen},
        "participants": {
            "committed": len(records),
            "revealed": revealed,
            "unrevealed": len(records) - revealed,
        },
        "stopped": ledger.stopped,
        "counts": ledger.tally(),
        "violations": violations,
    }


def write_audit_report(*, events_path: Path, outdir: Path, strict: bool = False) -> Path:
    report = audit_events(read_events(events_path), strict=strict)
    report["events_path"] = str(events_path.resolve())

    outdir.mkdir(parents=True, exist_ok=True)
    out = outdir / "audit.json"
    out.write_text(json.dumps(report, indent=2, sort_keys=True, ensure_ascii=False) + "\n", encoding="utf-8")
    return out


def open_ledger(
    events_path: Path,
    *,
    administrator: Optional[str] = None,
    digest_alg: Optional[str] = None,
) -> VotingLedger:
    """
    Rebuild a ledger from its event log and keep appending to it.
    A missing/empty log starts a new ledger (administrator required).
    administrator/digest_alg, when given, must match what the log records.
    """
    events_path = Path(events_path)
    log = EventLog(events_path)

    with log.locked():
        events = read_events(events_path)
        if events:
            ledger, _, _ = _replay(events, strict=True, events_path=events_path)
            if administrator is not None and administrator != ledger.administrator:
                raise ConfigError(f"administrator mismatch: log has '{ledger.administrator}', got '{administrator}'")
            if digest_alg is not None and digest_alg != ledger.digest_alg:
                raise ConfigError(f"digest_alg mismatch: log has '{ledger.digest_alg}', got '{digest_alg}'")
        else:
            if administrator is None:
                raise ConfigError(f"no ledger at {events_path}; an administrator is required to open one")
            ledger = VotingLedger(LedgerConfig(
                administrator=administrator,
                digest_alg=digest_alg or DEFAULT_DIGEST_ALG,
                events_path=events_path,
            ))
        ledger.attach_event_log(log)

    logger.info("ledger opened from %s (%d events)", events_path, len(events))
    return ledger


def ledger_from_config(config: LedgerConfig) -> VotingLedger:
    """
    In-memory ledger, or the one persisted at config.events_path. An unset
    digest_alg follows the log.
    """
    if config.events_path is None:
        return VotingLedger(config)
    return open_ledger(config.events_path, administrator=config.administrator, digest_alg=config.digest_alg)
