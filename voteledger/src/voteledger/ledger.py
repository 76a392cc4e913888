"""
Voting Ledger v0.1 (commit-reveal)

Owns all voting state:
  - participant records: identity -> (commitment_hash, revealed)
  - tally: candidate -> count of verified reveals
  - voting period: open -> stopped (write-once, administrator only)

Every operation takes the caller identity explicitly. Mutations run under a
single lock, so they apply atomically and in one total order; a rejected call
leaves state untouched.

When an EventLog is attached, each applied mutation is appended to it before
the in-memory state changes. A failed append therefore rejects the call.
Several ledgers (or processes) may share one log: each mutation first applies
what the others appended, under the log's file lock, then checks and appends.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, Optional

import hmac
import logging
import threading

from voteledger.commitment import DEFAULT_DIGEST_ALG, compute_commitment, normalize_commitment, normalize_secret, require_identity
from voteledger.config import LedgerConfig
from voteledger.errors import (
    AlreadyCommittedError,
    AlreadyRevealedError,
    CommitmentMismatchError,
    EventLogError,
    MalformedInputError,
    NoCommitmentError,
    UnauthorizedError,
    VotingError,
    VotingStoppedError,
)
from voteledger.events import LEDGER_OPENED, VOTE_COMMITTED, VOTE_REVEALED, VOTING_STOPPED, EventLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParticipantRecord:
    commitment_hash: str = ""
    revealed: bool = False

    @property
    def exists(self) -> bool:
        return bool(self.commitment_hash)

    def to_dict(self) -> Dict[str, Any]:
        return {"commitment_hash": self.commitment_hash, "revealed": self.revealed}


EMPTY_RECORD = ParticipantRecord()


@dataclass
class VotingPeriod:
    """Administrator is fixed; stopped only ever goes False -> True."""

    administrator: str
    stopped: bool = False

    def is_administrator(self, caller: str) -> bool:
        return hmac.compare_digest(caller.encode("utf-8"), self.administrator.encode("utf-8"))


class VotingLedger:
    def __init__(self, config: LedgerConfig, *, event_log: Optional[EventLog] = None) -> None:
        self.config = config
        self.digest_alg = config.digest_alg or DEFAULT_DIGEST_ALG
        self.period = VotingPeriod(administrator=config.administrator)
        self._commits: Dict[str, ParticipantRecord] = {}
        self._votes: Dict[str, int] = {}
        self._lock = threading.RLock()
        self._event_log: Optional[EventLog] = None
        self._seq = 0  # last logged event reflected in memory
        if event_log is not None:
            self.attach_event_log(event_log)

    # -------------------------
    # event log
    # -------------------------
    def attach_event_log(self, event_log: EventLog) -> None:
        """
        Subsequent mutations are appended to event_log. Events already in the
        log past this ledger's position are applied first; an empty log is
        started with a ledger_opened event.
        """
        with self._lock, event_log.locked():
            if event_log.last_seq < self._seq:
                raise EventLogError(f"{event_log.path} ends at seq {event_log.last_seq}, ledger is at {self._seq}")
            self._catch_up(event_log)
            if self._seq == 0:
                event = event_log.append(LEDGER_OPENED, {
                    "administrator": self.administrator,
                    "digest_alg": self.digest_alg,
                }, after=0)
                self._seq = event["seq"]
            self._event_log = event_log

    @property
    def event_log(self) -> Optional[EventLog]:
        return self._event_log

    def apply_event(self, event: Dict[str, Any]) -> None:
        """
        Applies one logged event through the public operations, so reveals
        are re-verified, without logging it again. Raises VotingError when
        the ledger rejects it.
        """
        kind = event["kind"]
        data = event["data"]
        with self._lock:
            log, self._event_log = self._event_log, None
            try:
                if kind == LEDGER_OPENED:
                    self._check_opened(data)
                elif kind == VOTE_COMMITTED:
                    self.commit_vote(data["voter"], data["commitment_hash"])
                elif kind == VOTE_REVEALED:
                    self.reveal_vote(data["voter"], data["candidate"], data["secret"])
                elif kind == VOTING_STOPPED:
                    self.stop_voting(data["caller"])
                else:
                    raise EventLogError(f"unexpected event kind '{kind}'")
            finally:
                self._event_log = log
            self._seq = event["seq"]

    def _check_opened(self, data: Dict[str, Any]) -> None:
        if self._seq:
            raise EventLogError(f"{LEDGER_OPENED} after seq {self._seq}")
        if data["administrator"] != self.administrator or data["digest_alg"] != self.digest_alg:
            raise EventLogError(
                f"log belongs to administrator '{data['administrator']}' ({data['digest_alg']}), "
                f"not '{self.administrator}' ({self.digest_alg})"
            )

    def _catch_up(self, event_log: EventLog) -> None:
        # event_log lock held
        for event in event_log.read_after(self._seq):
            try:
                self.apply_event(event)
            except VotingError as e:
                raise EventLogError(f"{event_log.path.name}: seq {event['seq']} rejected on catch-up: {e.message}") from e

    @contextmanager
    def _synced(self) -> Iterator[None]:
        """
        Holds the ledger lock and, with a log attached, the log's file lock,
        after applying whatever other writers appended since the last call.
        """
        with self._lock:
            log = self._event_log
            if log is None:
                yield
                return
            with log.locked():
                self._catch_up(log)
                yield

    def _emit(self, kind: str, data: Dict[str, Any]) -> None:
        if self._event_log is not None:
            event = self._event_log.append(kind, data, after=self._seq)
            self._seq = event["seq"]

    def _rejected(self, op: str, caller: str, err: VotingError) -> VotingError:
        logger.warning("%s rejected for %s: %s (%s)", op, caller, err.message, err.code)
        return err

    # -------------------------
    # mutations
    # -------------------------
    def commit_vote(self, caller: str, commitment_hash: str) -> ParticipantRecord:
        caller = require_identity(caller, "caller")
        with self._synced():
            if self.period.stopped:
                raise self._rejected("commit_vote", caller, VotingStoppedError())
            if caller in self._commits:
                raise self._rejected("commit_vote", caller, AlreadyCommittedError())
            h = normalize_commitment(commitment_hash)

            self._emit(VOTE_COMMITTED, {"voter": caller, "commitment_hash": h})
            record = ParticipantRecord(commitment_hash=h)
            self._commits[caller] = record

        logger.info("vote committed by %s", caller)
        return record

    def reveal_vote(self, caller: str, candidate: str, secret: Any) -> int:
        """
        Verifies (candidate, secret, caller) against the stored commitment and
        counts the vote. Returns the candidate's new tally.

        A secret that is not 32 bytes (or 64 hex chars) cannot have produced
        any commitment, so it is rejected as a mismatch like a wrong one.
        """
        caller = require_identity(caller, "caller")
        with self._synced():
            if self.period.stopped:
                raise self._rejected("reveal_vote", caller, VotingStoppedError())
            record = self._commits.get(caller)
            if record is None:
                raise self._rejected("reveal_vote", caller, NoCommitmentError())
            if record.revealed:
                raise self._rejected("reveal_vote", caller, AlreadyRevealedError())

            candidate = require_identity(candidate, "candidate")
            try:
                secret_hex = normalize_secret(secret)
            except MalformedInputError as e:
                logger.debug("reveal_vote by %s: %s", caller, e.message)
                raise self._rejected("reveal_vote", caller, CommitmentMismatchError()) from e
            recomputed = compute_commitment(candidate, secret_hex, caller, alg=self.digest_alg)
            if not hmac.compare_digest(recomputed, record.commitment_hash):
                raise self._rejected("reveal_vote", caller, CommitmentMismatchError())

            self._emit(VOTE_REVEALED, {"voter": caller, "candidate": candidate, "secret": secret_hex})
            self._commits[caller] = replace(record, revealed=True)
            count = self._votes.get(candidate, 0) + 1
            self._votes[candidate] = count

        logger.info("vote revealed by %s", caller)
        return count

    def stop_voting(self, caller: str) -> bool:
        """
        Ends the voting period. Returns False when it was already stopped
        (repeat calls by the administrator are a no-op).
        """
        caller = require_identity(caller, "caller")
        with self._synced():
            if not self.period.is_administrator(caller):
                raise self._rejected("stop_voting", caller, UnauthorizedError())
            if self.period.stopped:
                logger.debug("stop_voting by %s: already stopped", caller)
                return False

            self._emit(VOTING_STOPPED, {"caller": caller})
            self.period.stopped = True

        logger.info("voting stopped by %s", caller)
        return True

    # -------------------------
    # reads
    # -------------------------
    def commits(self, identity: str) -> ParticipantRecord:
        with self._synced():
            return self._commits.get(identity, EMPTY_RECORD)

    def votes(self, candidate: str) -> int:
        with self._synced():
            return self._votes.get(candidate, 0)

    @property
    def stopped(self) -> bool:
        with self._synced():
            return self.period.stopped

    @property
    def administrator(self) -> str:
        return self.period.administrator

    def tally(self) -> Dict[str, int]:
        with self._synced():
            return dict(sorted(self._votes.items()))

    def participants(self) -> Dict[str, ParticipantRecord]:
        with self._synced():
            return dict(sorted(self._commits.items()))

    def snapshot(self) -> Dict[str, Any]:
        with self._synced():
            return {
                "administrator": self.period.administrator,
                "digest_alg": self.digest_alg,
                "stopped": self.period.stopped,
                "commits": {k: v.to_dict() for k, v in sorted(self._commits.items())},
                "votes": dict(sorted(self._votes.items())),
            }
