"""
Vote commitments v0.1 (client side + ledger side)

A commitment binds the ordered triple (candidate, secret, voter):

    commitment = H(canonical_json([candidate, secret_hex, voter]))

Both the committing client and the ledger must go through canonical_triple();
any other encoding of the triple breaks every reveal.

Binding the voter identity into the digest means a commitment observed on the
ledger cannot be replayed by another participant.
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Union

import hashlib
import hmac
import json
import re
import secrets

from voteledger.errors import MalformedInputError


DEFAULT_DIGEST_ALG = "sha256"
DIGEST_ALGORITHMS = ("sha256", "sha3_256", "blake2b")

SECRET_SIZE = 32
DIGEST_HEX_LEN = 64

SecretLike = Union[str, bytes]

_HEX_RE = re.compile(r"[0-9a-f]+")


def _canonical_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), sort_keys=True)


def _strip_hex(value: str) -> str:
    v = value.strip()
    if v[:2] in ("0x", "0X"):
        v = v[2:]
    return v.lower()


def _is_hex(value: str) -> bool:
    return _HEX_RE.fullmatch(value) is not None


def require_identity(value: Any, what: str = "identity") -> str:
    if not isinstance(value, str) or not value.strip():
        raise MalformedInputError(f"{what} must be a non-empty string")
    return value


def normalize_secret(secret: SecretLike) -> str:
    """
    Accepts 32 raw bytes or 64 hex chars (optional 0x prefix).
    Returns lowercase hex.
    """
    if isinstance(secret, (bytes, bytearray)):
        if len(secret) != SECRET_SIZE:
            raise MalformedInputError(f"secret must be {SECRET_SIZE} bytes, got {len(secret)}")
        return bytes(secret).hex()
    if not isinstance(secret, str):
        raise MalformedInputError("secret must be bytes or a hex string")
    h = _strip_hex(secret)
    if len(h) != SECRET_SIZE * 2 or not _is_hex(h):
        raise MalformedInputError(f"secret must be {SECRET_SIZE * 2} hex chars")
    return h


def normalize_commitment(commitment_hash: str) -> str:
    if not isinstance(commitment_hash, str):
        raise MalformedInputError("commitment hash must be a hex string")
    h = _strip_hex(commitment_hash)
    if len(h) != DIGEST_HEX_LEN or not _is_hex(h):
        raise MalformedInputError(f"commitment hash must be {DIGEST_HEX_LEN} hex chars")
    return h


def secret_from_text(text: str) -> str:
    """Right-pads short UTF-8 text with zero bytes to a 32-byte secret."""
    raw = text.encode("utf-8")
    if len(raw) > SECRET_SIZE - 1:
        raise MalformedInputError(f"secret text longer than {SECRET_SIZE - 1} bytes")
    return raw.ljust(SECRET_SIZE, b"\x00").hex()


def generate_secret() -> str:
    return secrets.token_hex(SECRET_SIZE)


def canonical_triple(candidate: str, secret: SecretLike, voter: str) -> bytes:
    candidate = require_identity(candidate, "candidate")
    voter = require_identity(voter, "voter")
    return _canonical_dumps([candidate, normalize_secret(secret), voter]).encode("utf-8")


def _digest(alg: str, body: bytes) -> str:
    if alg == "sha256":
        return hashlib.sha256(body).hexdigest()
    if alg == "sha3_256":
        return hashlib.sha3_256(body).hexdigest()
    if alg == "blake2b":
        return hashlib.blake2b(body, digest_size=32).hexdigest()
    raise ValueError(f"unsupported digest algorithm '{alg}'. Expected one of: {list(DIGEST_ALGORITHMS)}")


def compute_commitment(candidate: str, secret: SecretLike, voter: str, *, alg: str = DEFAULT_DIGEST_ALG) -> str:
    return _digest(alg, canonical_triple(candidate, secret, voter))


def verify_commitment(
    commitment_hash: str,
    candidate: str,
    secret: SecretLike,
    voter: str,
    *,
    alg: str = DEFAULT_DIGEST_ALG,
) -> bool:
    expected = normalize_commitment(commitment_hash)
    recomputed = compute_commitment(candidate, secret, voter, alg=alg)
    return hmac.compare_digest(expected, recomputed)


def build_commit_and_reveal(
    *,
    candidate: str,
    voter: str,
    secret: Optional[SecretLike] = None,
    alg: str = DEFAULT_DIGEST_ALG,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Returns (commit_doc, reveal_doc) for one voter.
    commit_doc is safe to publish; reveal_doc must stay private until the reveal.
    """
    secret_hex = normalize_secret(secret) if secret is not None else generate_secret()
    commitment = compute_commitment(candidate, secret_hex, voter, alg=alg)

    commit = {
        "voter": voter,
        "commitment_hash": commitment,
        "commitment_alg": alg,
    }
    reveal = {
        "voter": voter,
        "candidate": candidate,
        "secret": secret_hex,
    }
    return commit, reveal
