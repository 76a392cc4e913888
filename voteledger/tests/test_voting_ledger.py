import pytest

from voteledger.commitment import compute_commitment, secret_from_text
from voteledger.config import LedgerConfig
from voteledger.errors import (
    AlreadyCommittedError,
    AlreadyRevealedError,
    CommitmentMismatchError,
    MalformedInputError,
    NoCommitmentError,
    UnauthorizedError,
    VotingStoppedError,
)
from voteledger.ledger import EMPTY_RECORD, VotingLedger

OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
VOTER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
OTHER = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
CANDIDATE = "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D"
FAKE_CANDIDATE = "0x6B3595068778DD592e39A122f4f5a5cF09C90fE2"
SECRET = secret_from_text("1337")


@pytest.fixture
def ledger():
    return VotingLedger(LedgerConfig(administrator=OWNER))


def _hash(voter=VOTER, candidate=CANDIDATE, secret=SECRET):
    return compute_commitment(candidate, secret, voter)


def test_unknown_identity_reads_empty_record(ledger):
    assert ledger.commits(VOTER) == EMPTY_RECORD
    assert ledger.commits(VOTER).exists is False
    assert ledger.commits(VOTER).revealed is False
    assert ledger.votes(CANDIDATE) == 0


def test_user_can_commit_vote(ledger):
    vote_hash = _hash()
    ledger.commit_vote(VOTER, vote_hash)
    rec = ledger.commits(VOTER)
    assert rec.commitment_hash == vote_hash
    assert rec.revealed is False


def test_user_cannot_vote_twice(ledger):
    ledger.commit_vote(VOTER, _hash())
    with pytest.raises(AlreadyCommittedError, match="Already voted"):
        ledger.commit_vote(VOTER, _hash())
    # any payload, even garbage
    with pytest.raises(AlreadyCommittedError):
        ledger.commit_vote(VOTER, "not-a-hash")


def test_cannot_recommit_after_reveal(ledger):
    ledger.commit_vote(VOTER, _hash())
    ledger.reveal_vote(VOTER, CANDIDATE, SECRET)
    with pytest.raises(AlreadyCommittedError):
        ledger.commit_vote(VOTER, _hash(candidate=FAKE_CANDIDATE))


def test_user_cannot_vote_if_voting_stopped(ledger):
    ledger.stop_voting(OWNER)
    with pytest.raises(VotingStoppedError, match="Voting stopped"):
        ledger.commit_vote(VOTER, _hash())
    assert ledger.commits(VOTER) == EMPTY_RECORD


def test_user_cannot_reveal_if_voting_stopped(ledger):
    ledger.commit_vote(VOTER, _hash())
    ledger.stop_voting(OWNER)
    with pytest.raises(VotingStoppedError):
        ledger.reveal_vote(VOTER, CANDIDATE, SECRET)
    assert ledger.commits(VOTER).revealed is False
    assert ledger.votes(CANDIDATE) == 0


def test_user_can_reveal_vote(ledger):
    before = ledger.votes(CANDIDATE)
    ledger.commit_vote(VOTER, _hash())
    assert ledger.reveal_vote(VOTER, CANDIDATE, SECRET) == before + 1
    assert ledger.commits(VOTER).revealed is True
    assert ledger.votes(CANDIDATE) == before + 1


def test_user_cannot_reveal_twice(ledger):
    ledger.commit_vote(VOTER, _hash())
    ledger.reveal_vote(VOTER, CANDIDATE, SECRET)
    with pytest.raises(AlreadyRevealedError, match="Already revealed"):
        ledger.reveal_vote(VOTER, CANDIDATE, SECRET)
    assert ledger.votes(CANDIDATE) == 1


def test_user_cannot_reveal_with_invalid_secret(ledger):
    ledger.commit_vote(VOTER, _hash())
    with pytest.raises(CommitmentMismatchError, match="Invalid commit"):
        ledger.reveal_vote(VOTER, CANDIDATE, secret_from_text("bushdio"))
    assert ledger.commits(VOTER).revealed is False


def test_user_cannot_change_candidate_on_reveal(ledger):
    ledger.commit_vote(VOTER, _hash())
    with pytest.raises(CommitmentMismatchError):
        ledger.reveal_vote(VOTER, FAKE_CANDIDATE, SECRET)
    assert ledger.votes(FAKE_CANDIDATE) == 0
    assert ledger.votes(CANDIDATE) == 0
    # the correct triple still works afterwards
    ledger.reveal_vote(VOTER, CANDIDATE, SECRET)
    assert ledger.votes(CANDIDATE) == 1


def test_copied_commitment_cannot_be_revealed_by_another_identity(ledger):
    observed = _hash()
    ledger.commit_vote(VOTER, observed)
    ledger.commit_vote(OTHER, observed)
    with pytest.raises(CommitmentMismatchError):
        ledger.reveal_vote(OTHER, CANDIDATE, SECRET)


def test_reveal_without_commit(ledger):
    with pytest.raises(NoCommitmentError):
        ledger.reveal_vote(VOTER, CANDIDATE, SECRET)
    assert ledger.commits(VOTER) == EMPTY_RECORD


def test_stop_voting_requires_administrator(ledger):
    with pytest.raises(UnauthorizedError):
        ledger.stop_voting(VOTER)
    assert ledger.stopped is False
    ledger.commit_vote(VOTER, _hash())


def test_stop_voting_is_idempotent_for_administrator(ledger):
    assert ledger.stop_voting(OWNER) is True
    assert ledger.stop_voting(OWNER) is False
    assert ledger.stopped is True
    with pytest.raises(UnauthorizedError):
        ledger.stop_voting(VOTER)


def test_stopped_blocks_every_identity(ledger):
    ledger.commit_vote(VOTER, _hash())
    ledger.stop_voting(OWNER)
    for who in (VOTER, OTHER, OWNER):
        with pytest.raises(VotingStoppedError):
            ledger.commit_vote(who, _hash(voter=who))
        with pytest.raises(VotingStoppedError):
            ledger.reveal_vote(who, CANDIDATE, SECRET)


def test_malformed_inputs_leave_state_unchanged(ledger):
    with pytest.raises(MalformedInputError):
        ledger.commit_vote("", _hash())
    with pytest.raises(MalformedInputError):
        ledger.commit_vote(VOTER, "zz")
    assert ledger.commits(VOTER) == EMPTY_RECORD

    ledger.commit_vote(VOTER, _hash())
    with pytest.raises(MalformedInputError):
        ledger.reveal_vote(VOTER, "", SECRET)
    assert ledger.commits(VOTER).revealed is False


@pytest.mark.parametrize("secret", ["1337", "0x" + "ab" * 31, "zz" * 32, b"\x01" * 31, 1337])
def test_malformed_secret_is_rejected_as_mismatch(ledger, secret):
    ledger.commit_vote(VOTER, _hash())
    with pytest.raises(CommitmentMismatchError) as ei:
        ledger.reveal_vote(VOTER, CANDIDATE, secret)
    assert ei.value.message == "Invalid commit"
    assert ledger.commits(VOTER).revealed is False
    assert ledger.votes(CANDIDATE) == 0
    assert ledger.reveal_vote(VOTER, CANDIDATE, SECRET) == 1


def test_tally_and_snapshot_across_voters(ledger):
    voters = [f"voter-{i}" for i in range(5)]
    choices = [CANDIDATE, CANDIDATE, FAKE_CANDIDATE, CANDIDATE, FAKE_CANDIDATE]
    for v, c in zip(voters, choices):
        ledger.commit_vote(v, compute_commitment(c, SECRET, v))
    for v, c in zip(voters[:4], choices[:4]):
        ledger.reveal_vote(v, c, SECRET)

    assert ledger.tally() == {CANDIDATE: 3, FAKE_CANDIDATE: 1}
    snap = ledger.snapshot()
    assert snap["administrator"] == OWNER
    assert snap["stopped"] is False
    assert snap["commits"]["voter-4"]["revealed"] is False
    assert sum(1 for r in snap["commits"].values() if r["revealed"]) == 4


def test_non_default_digest_alg_is_used_for_verification():
    ledger = VotingLedger(LedgerConfig(administrator=OWNER, digest_alg="sha3_256"))
    ledger.commit_vote(VOTER, _hash())  # sha256 commitment
    with pytest.raises(CommitmentMismatchError):
        ledger.reveal_vote(VOTER, CANDIDATE, SECRET)

    ledger.commit_vote(OTHER, compute_commitment(CANDIDATE, SECRET, OTHER, alg="sha3_256"))
    assert ledger.reveal_vote(OTHER, CANDIDATE, SECRET) == 1
