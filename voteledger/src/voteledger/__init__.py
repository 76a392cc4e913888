from voteledger.audit import audit_events, ledger_from_config, open_ledger, replay_events, write_audit_report
from voteledger.commitment import (
    build_commit_and_reveal,
    canonical_triple,
    compute_commitment,
    generate_secret,
    secret_from_text,
    verify_commitment,
)
from voteledger.config import LedgerConfig, load_config
from voteledger.errors import (
    AlreadyCommittedError,
    AlreadyRevealedError,
    AuditError,
    CommitmentMismatchError,
    ConfigError,
    EventLogError,
    MalformedInputError,
    NoCommitmentError,
    UnauthorizedError,
    VotingError,
    VotingStoppedError,
)
from voteledger.events import EventLog, read_events
from voteledger.ledger import EMPTY_RECORD, ParticipantRecord, VotingLedger, VotingPeriod
from voteledger.version import __version__

__all__ = [
    "AlreadyCommittedError",
    "AlreadyRevealedError",
    "AuditError",
    "CommitmentMismatchError",
    "ConfigError",
    "EMPTY_RECORD",
    "EventLog",
    "EventLogError",
    "LedgerConfig",
    "MalformedInputError",
    "NoCommitmentError",
    "ParticipantRecord",
    "UnauthorizedError",
    "VotingError",
    "VotingLedger",
    "VotingPeriod",
    "VotingStoppedError",
    "audit_events",
    "build_commit_and_reveal",
    "canonical_triple",
    "compute_commitment",
    "generate_secret",
    "ledger_from_config",
    "load_config",
    "open_ledger",
    "read_events",
    "replay_events",
    "secret_from_text",
    "verify_commitment",
    "write_audit_report",
    "__version__",
]
