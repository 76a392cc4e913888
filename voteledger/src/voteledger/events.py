"""
Ledger event log v0.1 (append-only JSONL)

One canonical JSON object per line:
  {"seq": 1, "kind": "vote_committed", "at": "2026-01-01T00:00:00Z", "data": {...}}

Only applied mutations are written. seq is strictly increasing and continues
from the last line of the file, whichever process wrote it; appends are
serialized by a lock file next to the log (filelock).
"""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import json
import os
import threading

from filelock import FileLock, Timeout
from jsonschema import Draft202012Validator

from voteledger.errors import EventLogError


EVENT_SCHEMA_ID = "voteledger.event.v0_1"

LEDGER_OPENED = "ledger_opened"
VOTE_COMMITTED = "vote_committed"
VOTE_REVEALED = "vote_revealed"
VOTING_STOPPED = "voting_stopped"

_ID = {"type": "string", "minLength": 1}
_HEX64 = {"type": "string", "pattern": "^[0-9a-f]{64}$"}


def _data_schema(required: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "object",
        "required": sorted(required),
        "properties": required,
        "additionalProperties": False,
    }


def _kind_rule(kind: str, data_schema: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "if": {"properties": {"kind": {"const": kind}}},
        "then": {"properties": {"data": data_schema}},
    }


EVENT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": EVENT_SCHEMA_ID,
    "type": "object",
    "required": ["seq", "kind", "at", "data"],
    "additionalProperties": False,
    "properties": {
        "seq": {"type": "integer", "minimum": 1},
        "kind": {"enum": [LEDGER_OPENED, VOTE_COMMITTED, VOTE_REVEALED, VOTING_STOPPED]},
        "at": {"type": "string", "minLength": 1},
        "data": {"type": "object"},
    },
    "allOf": [
        _kind_rule(LEDGER_OPENED, _data_schema({"administrator": _ID, "digest_alg": _ID})),
        _kind_rule(VOTE_COMMITTED, _data_schema({"voter": _ID, "commitment_hash": _HEX64})),
        _kind_rule(VOTE_REVEALED, _data_schema({"voter": _ID, "candidate": _ID, "secret": _HEX64})),
        _kind_rule(VOTING_STOPPED, _data_schema({"caller": _ID})),
    ],
}

_validator: Optional[Draft202012Validator] = None


def _get_validator() -> Draft202012Validator:
    global _validator
    if _validator is None:
        Draft202012Validator.check_schema(EVENT_SCHEMA)
        _validator = Draft202012Validator(EVENT_SCHEMA)
    return _validator


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _canonical_line(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":")) + "\n"


def validate_event(event: Any) -> None:
    errors = sorted(_get_validator().iter_errors(event), key=lambda e: str(list(e.path)))
    if errors:
        msg = "; ".join(f"{list(e.path)}: {e.message}" for e in errors)
        raise EventLogError(f"event failed schema validation: {msg}")


def _parse_line(line: str, where: str) -> Dict[str, Any]:
    try:
        event = json.loads(line)
    except json.JSONDecodeError as e:
        raise EventLogError(f"{where}: invalid JSON: {e}") from e
    try:
        validate_event(event)
    except EventLogError as e:
        raise EventLogError(f"{where}: {e}") from e
    return event


def iter_events(path: Path) -> Iterator[Dict[str, Any]]:
    """
    Yields validated events in file order. Blank lines are skipped.
    Raises EventLogError naming the offending line.
    """
    last_seq = 0
    with path.open("r", encoding="utf-8-sig") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            event = _parse_line(line, f"{path.name}:{lineno}")
            if event["seq"] <= last_seq:
                raise EventLogError(f"{path.name}:{lineno}: seq {event['seq']} does not follow {last_seq}")
            last_seq = event["seq"]
            yield event


def read_events(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        return []
    return list(iter_events(path))


class EventLog:
    """
    Append-only writer for one JSONL file.

    Any number of EventLog objects, in this process or others, may share a
    path. Writes and tail reads happen under an exclusive lock on
    "<path>.lock", and seq is always taken from the file itself, so two
    writers can never both append the same seq.

    Use one EventLog per ledger; the tail position it tracks is not shared.
    """

    def __init__(self, path: Path, *, lock_timeout: float = -1) -> None:
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self._lock = threading.RLock()
        self._file_lock = FileLock(str(self.lock_path), timeout=lock_timeout)
        # tail position: bytes and lines consumed, seq of the last line seen
        self._offset = 0
        self._lineno = 0
        self._seq = 0
        if self.path.exists():
            with self.locked():
                self._scan()

    @contextmanager
    def locked(self) -> Iterator["EventLog"]:
        """
        Exclusive access to the file across threads and processes. Reentrant,
        so a caller may hold it around several reads and appends.
        """
        with self._lock:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                with self._file_lock:
                    yield self
            except Timeout as e:
                raise EventLogError(f"timed out waiting for {self.lock_path}") from e

    def _scan(self) -> List[Dict[str, Any]]:
        # lock held; consumes lines appended since the last scan
        if not self.path.exists():
            return []
        with self.path.open("rb") as f:
            f.seek(self._offset)
            chunk = f.read()
        if not chunk:
            return []

        text = chunk.decode("utf-8-sig" if self._offset == 0 else "utf-8")
        new: List[Dict[str, Any]] = []
        lineno, seq = self._lineno, self._seq
        lines = text.split("\n")
        if lines[-1] == "":
            lines.pop()
        for line in lines:
            lineno += 1
            if not line.strip():
                continue
            where = f"{self.path.name}:{lineno}"
            event = _parse_line(line, where)
            if event["seq"] <= seq:
                raise EventLogError(f"{where}: seq {event['seq']} does not follow {seq}")
            seq = event["seq"]
            new.append(event)
        self._offset += len(chunk)
        self._lineno, self._seq = lineno, seq
        return new

    @property
    def last_seq(self) -> int:
        with self.locked():
            self._scan()
            return self._seq

    def is_empty(self) -> bool:
        return self.last_seq == 0

    def read_after(self, seq: int) -> List[Dict[str, Any]]:
        """Events with a seq greater than `seq`, in file order."""
        with self.locked():
            tail_before = self._seq
            new = self._scan()
            if seq >= tail_before:
                return [e for e in new if e["seq"] > seq]
            return [e for e in read_events(self.path) if e["seq"] > seq]

    def append(self, kind: str, data: Dict[str, Any], *, after: Optional[int] = None) -> Dict[str, Any]:
        """
        Appends one event and returns it. When `after` is given the file's
        last seq must equal it, otherwise EventLogError is raised and nothing
        is written (the caller's view of the log is stale).
        """
        event = {"seq": self._seq + 1, "kind": str(kind), "at": _utc_now_iso(), "data": data}
        validate_event(event)

        with self.locked():
            self._scan()
            if after is not None and after != self._seq:
                raise EventLogError(f"stale append: log is at seq {self._seq}, writer expected {after}")
            event["seq"] = self._seq + 1
            with self.path.open("a", encoding="utf-8", newline="\n") as f:
                f.write(_canonical_line(event))
                f.flush()
                os.fsync(f.fileno())
            self._scan()
            return event
