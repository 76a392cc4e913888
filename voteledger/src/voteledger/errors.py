from __future__ import annotations

from typing import Any, Dict, Optional


class VotingError(ValueError):
    """Base for every rejection raised by the voting ledger."""

    code = "voting_error"
    default_message = "voting operation rejected"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else self.default_message


class VotingStoppedError(VotingError):
    code = "voting_stopped"
    default_message = "Voting stopped"


class AlreadyCommittedError(VotingError):
    code = "already_committed"
    default_message = "Already voted"


class NoCommitmentError(VotingError):
    code = "no_commitment"
    default_message = "No commit to reveal"


class AlreadyRevealedError(VotingError):
    code = "already_revealed"
    default_message = "Already revealed"


class CommitmentMismatchError(VotingError):
    code = "commitment_mismatch"
    default_message = "Invalid commit"


class UnauthorizedError(VotingError):
    code = "unauthorized"
    default_message = "Only the administrator can stop voting"


class MalformedInputError(VotingError):
    code = "malformed_input"
    default_message = "Malformed input"


class EventLogError(ValueError):
    pass


class ConfigError(ValueError):
    pass


class AuditError(ValueError):
    def __init__(self, violation: Dict[str, Any]) -> None:
        super().__init__(f"event seq={violation.get('seq')}: {violation.get('code')}: {violation.get('message')}")
        self.violation = violation
