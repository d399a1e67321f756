"""
Bracket endpoints: build, view, complete a match, reconcile, repair.
All engine errors map to HTTP here; the services never raise HTTPException.
"""
import random
from datetime import datetime
from typing import Any, Dict, List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from matchplay.database import get_session
from matchplay.models.tournament import BracketMode, EntrantKind
from matchplay.services import bracket_service
from matchplay.services.bracket_errors import (
    AdvancementConflict,
    BracketError,
    MatchNotFound,
    PersistenceError,
    TournamentNotFound,
)
from matchplay.services.match_store import MatchStore
from matchplay.services.seeding import SeedingPolicy

router = APIRouter()


class BracketBuildRequest(BaseModel):
    capacity: Optional[int] = None
    entrant_kind: Optional[EntrantKind] = None  # defaults to the tournament's kind
    policy: Optional[SeedingPolicy] = None
    mode: Optional[BracketMode] = None
    shuffle_seed: Optional[int] = None  # only used by the shuffle policy


class MatchState(BaseModel):
    id: int
    tournament_id: int
    round_number: int
    match_number: int
    slot1_entrant_id: Optional[int] = None
    slot2_entrant_id: Optional[int] = None
    placeholder_slot1: Optional[str] = None
    placeholder_slot2: Optional[str] = None
    status: str
    winner_entrant_id: Optional[int] = None
    is_bye: bool = False
    score_json: Optional[Dict[str, Any]] = None
    feeds_to_match_id: Optional[int] = None
    feeds_to_position: Optional[int] = None
    previous_match_1_id: Optional[int] = None
    previous_match_2_id: Optional[int] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoundView(BaseModel):
    round_number: int
    name: str
    matches: List[MatchState]


class BracketView(BaseModel):
    tournament_id: int
    capacity: int
    total_rounds: int
    bracket_mode: str
    bracket_built_at: Optional[datetime] = None
    rounds: List[RoundView]


class MatchCompleteRequest(BaseModel):
    winner_entrant_id: int
    scores: Optional[Dict[str, Any]] = None


class MatchCompleteResponse(BaseModel):
    match: MatchState
    advanced_count: int = 0
    replayed: bool = False


def _raise_http(exc: BracketError) -> NoReturn:
    if isinstance(exc, (TournamentNotFound, MatchNotFound)):
        status = 404
    elif isinstance(exc, AdvancementConflict):
        status = 409
    elif isinstance(exc, PersistenceError):
        status = 503
    else:
        # StructureError / ValidationError
        status = 422
    raise HTTPException(status_code=status, detail=exc.to_dict())


@router.post("/tournaments/{tournament_id}/bracket", status_code=201)
def build_bracket(
    tournament_id: int,
    payload: Optional[BracketBuildRequest] = None,
    session: Session = Depends(get_session),
):
    """Build the bracket from the tournament's registrations and seed round 1"""
    payload = payload or BracketBuildRequest()
    rng = random.Random(payload.shuffle_seed) if payload.shuffle_seed is not None else None
    try:
        result = bracket_service.build_bracket(
            MatchStore(session),
            tournament_id,
            capacity=payload.capacity,
            entrant_kind=payload.entrant_kind.value if payload.entrant_kind else None,
            policy=payload.policy,
            mode=payload.mode.value if payload.mode else None,
            rng=rng,
        )
    except BracketError as exc:
        _raise_http(exc)
    return result.to_dict()


@router.get("/tournaments/{tournament_id}/bracket", response_model=BracketView)
def get_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Bracket grouped by round, with round display names"""
    store = MatchStore(session)
    try:
        rounds = bracket_service.rounds_view(store, tournament_id)
    except BracketError as exc:
        _raise_http(exc)
    tournament = store.get_tournament(tournament_id)
    return BracketView(
        tournament_id=tournament.id,
        capacity=tournament.capacity,
        total_rounds=tournament.total_rounds,
        bracket_mode=tournament.bracket_mode,
        bracket_built_at=tournament.bracket_built_at,
        rounds=[
            RoundView(
                round_number=r["round_number"],
                name=r["name"],
                matches=[MatchState.model_validate(m) for m in r["matches"]],
            )
            for r in rounds
        ],
    )


@router.delete("/tournaments/{tournament_id}/bracket")
def delete_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Tear down the bracket; registrations stay and the tournament can be rebuilt"""
    try:
        deleted = bracket_service.teardown_bracket(MatchStore(session), tournament_id)
    except BracketError as exc:
        _raise_http(exc)
    return {"tournament_id": tournament_id, "matches_deleted": deleted}


@router.get("/tournaments/{tournament_id}/matches/{match_id}", response_model=MatchState)
def get_match(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    match = MatchStore(session).get_match(match_id)
    if not match or match.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


@router.post(
    "/tournaments/{tournament_id}/matches/{match_id}/complete",
    response_model=MatchCompleteResponse,
)
def complete_match(
    tournament_id: int,
    match_id: int,
    payload: MatchCompleteRequest,
    session: Session = Depends(get_session),
):
    """Record a winner and advance it into the next round"""
    try:
        result = bracket_service.complete_match(
            MatchStore(session),
            tournament_id,
            match_id,
            payload.winner_entrant_id,
            payload.scores,
        )
    except BracketError as exc:
        _raise_http(exc)
    return MatchCompleteResponse(
        match=MatchState.model_validate(result.match),
        advanced_count=result.advanced_count,
        replayed=result.replayed,
    )


@router.post("/tournaments/{tournament_id}/reconcile")
def reconcile_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Run one reconciliation pass now (the poller does the same on a timer)"""
    try:
        result = bracket_service.reconcile(MatchStore(session), tournament_id)
    except BracketError as exc:
        _raise_http(exc)
    return result.to_dict()


@router.post("/tournaments/{tournament_id}/resolve-dependencies")
def resolve_dependencies(tournament_id: int, session: Session = Depends(get_session)):
    """Re-apply advancement for every completed match; reports remaining unknown slots"""
    try:
        return bracket_service.resolve_dependencies(MatchStore(session), tournament_id)
    except BracketError as exc:
        _raise_http(exc)
