import json
from pathlib import Path

import pytest

from voteledger.commitment import compute_commitment, secret_from_text
from voteledger.config import LedgerConfig
from voteledger.errors import CommitmentMismatchError, EventLogError, UnauthorizedError
from voteledger.events import EventLog, read_events, validate_event
from voteledger.ledger import VotingLedger

SECRET = secret_from_text("1337")


def _ledger(path: Path) -> VotingLedger:
    return VotingLedger(LedgerConfig(administrator="admin"), event_log=EventLog(path))


def test_attached_log_records_applied_mutations_only(tmp_path: Path):
    p = tmp_path / "events.jsonl"
    ledger = _ledger(p)
    ledger.commit_vote("alice", compute_commitment("yes", SECRET, "alice"))
    with pytest.raises(CommitmentMismatchError):
        ledger.reveal_vote("alice", "no", SECRET)
    ledger.reveal_vote("alice", "yes", SECRET)
    with pytest.raises(UnauthorizedError):
        ledger.stop_voting("alice")
    ledger.stop_voting("admin")
    ledger.stop_voting("admin")  # no-op, not logged

    events = read_events(p)
    assert [e["kind"] for e in events] == ["ledger_opened", "vote_committed", "vote_revealed", "voting_stopped"]
    assert [e["seq"] for e in events] == [1, 2, 3, 4]
    assert events[0]["data"] == {"administrator": "admin", "digest_alg": "sha256"}
    assert events[2]["data"] == {"voter": "alice", "candidate": "yes", "secret": SECRET}
    assert events[3]["at"].endswith("Z")


def test_lines_are_canonical_json(tmp_path: Path):
    p = tmp_path / "events.jsonl"
    _ledger(p)
    line = p.read_text(encoding="utf-8").splitlines()[0]
    obj = json.loads(line)
    assert line == json.dumps(obj, sort_keys=True, separators=(",", ":"))


def test_seq_continues_in_existing_file(tmp_path: Path):
    p = tmp_path / "events.jsonl"
    _ledger(p)
    log = EventLog(p)
    assert log.last_seq == 1
    ev = log.append("vote_committed", {"voter": "bob", "commitment_hash": "ab" * 32})
    assert ev["seq"] == 2


def test_append_rejects_schema_violations(tmp_path: Path):
    log = EventLog(tmp_path / "events.jsonl")
    with pytest.raises(EventLogError):
        log.append("vote_committed", {"voter": "bob", "commitment_hash": "xyz"})
    with pytest.raises(EventLogError):
        log.append("vote_tampered", {})
    assert log.is_empty()
    assert not (tmp_path / "events.jsonl").exists()


def test_validate_event_rejects_extra_data_fields():
    with pytest.raises(EventLogError):
        validate_event({"seq": 1, "kind": "voting_stopped", "at": "t", "data": {"caller": "a", "extra": 1}})


def test_read_events_reports_bad_line(tmp_path: Path):
    p = tmp_path / "events.jsonl"
    _ledger(p)
    with p.open("a", encoding="utf-8") as f:
        f.write("{not json\n")
    with pytest.raises(EventLogError, match=":2:"):
        read_events(p)


def test_read_events_rejects_non_increasing_seq(tmp_path: Path):
    p = tmp_path / "events.jsonl"
    _ledger(p)
    line = p.read_text(encoding="utf-8")
    p.write_text(line + line, encoding="utf-8")
    with pytest.raises(EventLogError, match="does not follow"):
        read_events(p)


def test_read_events_missing_file_is_empty(tmp_path: Path):
    assert read_events(tmp_path / "nope.jsonl") == []


def test_failed_append_leaves_state_unchanged(tmp_path: Path, monkeypatch):
    p = tmp_path / "events.jsonl"
    ledger = _ledger(p)
    ledger.commit_vote("alice", compute_commitment("yes", SECRET, "alice"))
    before = ledger.snapshot()

    def fail(self, kind, data, *, after=None):
        raise OSError("No space left on device")

    monkeypatch.setattr(EventLog, "append", fail)
    with pytest.raises(OSError):
        ledger.commit_vote("bob", compute_commitment("no", SECRET, "bob"))
    with pytest.raises(OSError):
        ledger.reveal_vote("alice", "yes", SECRET)
    with pytest.raises(OSError):
        ledger.stop_voting("admin")

    assert ledger.snapshot() == before
    assert ledger.commits("bob").exists is False
    assert ledger.votes("yes") == 0
    assert ledger.stopped is False
    assert [e["kind"] for e in read_events(p)] == ["ledger_opened", "vote_committed"]

    monkeypatch.undo()
    assert ledger.reveal_vote("alice", "yes", SECRET) == 1
    assert [e["seq"] for e in read_events(p)] == [1, 2, 3]


def test_stale_append_is_rejected(tmp_path: Path):
    p = tmp_path / "events.jsonl"
    _ledger(p)
    log = EventLog(p)
    with pytest.raises(EventLogError, match="stale"):
        log.append("vote_committed", {"voter": "bob", "commitment_hash": "ab" * 32}, after=0)
    assert len(read_events(p)) == 1
    ev = log.append("vote_committed", {"voter": "bob", "commitment_hash": "ab" * 32}, after=1)
    assert ev["seq"] == 2


def test_seq_follows_appends_from_other_writers(tmp_path: Path):
    p = tmp_path / "events.jsonl"
    first = EventLog(p)
    second = EventLog(p)
    first.append("ledger_opened", {"administrator": "admin", "digest_alg": "sha256"})
    ev = second.append("vote_committed", {"voter": "bob", "commitment_hash": "ab" * 32})
    assert ev["seq"] == 2
    assert first.last_seq == 2
    assert [e["seq"] for e in first.read_after(0)] == [1, 2]
    assert [e["seq"] for e in first.read_after(1)] == [2]
