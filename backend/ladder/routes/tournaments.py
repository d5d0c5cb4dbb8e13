"""
Session tournament endpoints. Thin adapter over TournamentService:
every handler translates a request into one service call and maps
TournamentError subclasses onto HTTP status codes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from ladder.database import get_session
from ladder.models.tournament import TeamMode
from ladder.services.errors import (
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    TournamentError,
)
from ladder.services.tournament_service import TournamentService
from ladder.services.tournament_view import TournamentDetail

router = APIRouter()

ACTION_END = "END"


class TournamentSetup(BaseModel):
    mode: TeamMode = TeamMode.RANDOM

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, v):
        """Accept any casing; anything other than FAIR means RANDOM."""
        if v is None:
            return TeamMode.RANDOM
        return TeamMode.FAIR if str(v).strip().upper() == TeamMode.FAIR.value else TeamMode.RANDOM


class TournamentAction(BaseModel):
    action: str


class TournamentGameCreate(BaseModel):
    tournament_id: int
    match_id: int
    score_a: int
    score_b: int


def get_tournament_service(session: Session = Depends(get_session)) -> TournamentService:
    return TournamentService(session)


def _raise_http(error: TournamentError) -> None:
    if isinstance(error, NotFoundError):
        raise HTTPException(status_code=404, detail=str(error))
    if isinstance(error, InvalidInputError):
        raise HTTPException(status_code=400, detail=str(error))
    if isinstance(error, (InvalidStateError, ConflictError)):
        raise HTTPException(status_code=409, detail=str(error))
    raise HTTPException(status_code=500, detail=str(error))


@router.get("/sessions/{session_id}/tournament", response_model=Optional[TournamentDetail])
def get_session_tournament(
    session_id: int,
    service: TournamentService = Depends(get_tournament_service),
) -> Optional[TournamentDetail]:
    """Get tournament state for a session (null when none was set up)"""
    return service.get_session_tournament(session_id)


@router.post("/sessions/{session_id}/tournament", response_model=TournamentDetail, status_code=201)
def setup_tournament(
    session_id: int,
    payload: TournamentSetup,
    service: TournamentService = Depends(get_tournament_service),
) -> TournamentDetail:
    try:
        return service.setup_tournament(session_id, payload.mode)
    except TournamentError as e:
        _raise_http(e)


@router.patch("/sessions/{session_id}/tournament", response_model=TournamentDetail)
def update_tournament(
    session_id: int,
    payload: TournamentAction,
    service: TournamentService = Depends(get_tournament_service),
) -> TournamentDetail:
    """Only action supported: END (stop the tournament early)"""
    if payload.action.strip().upper() != ACTION_END:
        raise HTTPException(status_code=400, detail="Unsupported action")
    try:
        return service.end_tournament_early(session_id)
    except TournamentError as e:
        _raise_http(e)


@router.post("/sessions/{session_id}/tournament/games", response_model=TournamentDetail, status_code=201)
def record_tournament_game(
    session_id: int,
    payload: TournamentGameCreate,
    service: TournamentService = Depends(get_tournament_service),
) -> TournamentDetail:
    """Record one game inside a match series"""
    try:
        return service.record_tournament_game(
            session_id,
            payload.tournament_id,
            payload.match_id,
            payload.score_a,
            payload.score_b,
        )
    except TournamentError as e:
        _raise_http(e)
