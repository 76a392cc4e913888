from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException

CALLER_HEADER = "X-Voter-ID"


def require_caller(x_voter_id: Optional[str] = Header(default=None)) -> str:
    """
    The gateway trusts whatever sits in front of it to authenticate the caller
    and forward the identity in X-Voter-ID.
    """
    if x_voter_id is None or not x_voter_id.strip():
        raise HTTPException(status_code=401, detail=f"Missing caller identity ({CALLER_HEADER}).")
    return x_voter_id
