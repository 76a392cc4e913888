from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from voteledger.api.security import require_caller
from voteledger.audit import ledger_from_config
from voteledger.config import load_config
from voteledger.errors import (
    AlreadyCommittedError,
    AlreadyRevealedError,
    CommitmentMismatchError,
    MalformedInputError,
    NoCommitmentError,
    UnauthorizedError,
    VotingError,
    VotingStoppedError,
)
from voteledger.ledger import VotingLedger
from voteledger.version import __version__


STATUS_BY_ERROR = {
    UnauthorizedError: 403,
    NoCommitmentError: 404,
    VotingStoppedError: 409,
    AlreadyCommittedError: 409,
    AlreadyRevealedError: 409,
    CommitmentMismatchError: 422,
    MalformedInputError: 422,
}


class CommitIn(BaseModel):
    commitment_hash: str


class RevealIn(BaseModel):
    candidate: str
    secret: str


class RecordOut(BaseModel):
    identity: str
    commitment_hash: str
    revealed: bool


class VotesOut(BaseModel):
    candidate: str
    votes: int


class StopOut(BaseModel):
    stopped: bool
    changed: bool


def _ledger(req: Request) -> VotingLedger:
    return req.app.state.ledger


def create_app(ledger: VotingLedger) -> FastAPI:
    app = FastAPI(title="voteledger commit-reveal gateway", version=__version__)
    app.state.ledger = ledger

    @app.exception_handler(VotingError)
    async def voting_error_handler(request: Request, exc: VotingError) -> JSONResponse:
        status = STATUS_BY_ERROR.get(type(exc), 400)
        return JSONResponse(status_code=status, content={"detail": exc.message, "code": exc.code})

    @app.get("/health")
    def health(req: Request) -> Dict[str, Any]:
        return {"ok": True, "version": __version__, "stopped": _ledger(req).stopped}

    @app.post("/v0/commit", response_model=RecordOut)
    def commit(req: Request, payload: CommitIn, caller: str = Depends(require_caller)) -> RecordOut:
        rec = _ledger(req).commit_vote(caller, payload.commitment_hash)
        return RecordOut(identity=caller, commitment_hash=rec.commitment_hash, revealed=rec.revealed)

    @app.post("/v0/reveal", response_model=VotesOut)
    def reveal(req: Request, payload: RevealIn, caller: str = Depends(require_caller)) -> VotesOut:
        count = _ledger(req).reveal_vote(caller, payload.candidate, payload.secret)
        return VotesOut(candidate=payload.candidate, votes=count)

    @app.post("/v0/stop", response_model=StopOut)
    def stop(req: Request, caller: str = Depends(require_caller)) -> StopOut:
        changed = _ledger(req).stop_voting(caller)
        return StopOut(stopped=True, changed=changed)

    @app.get("/v0/commits/{identity}", response_model=RecordOut)
    def commits(req: Request, identity: str) -> RecordOut:
        rec = _ledger(req).commits(identity)
        return RecordOut(identity=identity, commitment_hash=rec.commitment_hash, revealed=rec.revealed)

    @app.get("/v0/votes/{candidate}", response_model=VotesOut)
    def votes(req: Request, candidate: str) -> VotesOut:
        return VotesOut(candidate=candidate, votes=_ledger(req).votes(candidate))

    @app.get("/v0/tally")
    def tally(req: Request) -> Dict[str, Any]:
        ledger = _ledger(req)
        return {"stopped": ledger.stopped, "counts": ledger.tally()}

    return app


def create_app_from_env() -> FastAPI:
    """
    uvicorn --factory voteledger.api.app:create_app_from_env
    Config file path from VOTELEDGER_CONFIG (optional); see voteledger.config.
    """
    cfg_path = os.getenv("VOTELEDGER_CONFIG", "").strip()
    config = load_config(Path(cfg_path) if cfg_path else None)
    return create_app(ledger_from_config(config))
