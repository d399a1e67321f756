from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy import delete
from sqlmodel import Session, select

from matchplay.database import get_session
from matchplay.models.match import Match
from matchplay.models.registration import Registration
from matchplay.models.tournament import BracketMode, EntrantKind, Tournament
from matchplay.services.bracket_structure import is_power_of_two

router = APIRouter()


def _check_capacity(v: Optional[int]) -> Optional[int]:
    if v is None:
        return v
    if v < 2 or not is_power_of_two(v):
        raise ValueError("capacity must be a power of two >= 2")
    return v


class TournamentCreate(BaseModel):
    name: str
    entrant_kind: EntrantKind
    capacity: int
    bracket_mode: BracketMode = BracketMode.full
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("capacity")
    @classmethod
    def validate_capacity(cls, v):
        return _check_capacity(v)


class TournamentUpdate(BaseModel):
    name: Optional[str] = None
    notes: Optional[str] = None
    entrant_kind: Optional[EntrantKind] = None
    capacity: Optional[int] = None
    bracket_mode: Optional[BracketMode] = None

    @field_validator("capacity")
    @classmethod
    def validate_capacity(cls, v):
        return _check_capacity(v)


class TournamentResponse(BaseModel):
    id: int
    name: str
    entrant_kind: str
    capacity: int
    bracket_mode: str
    total_rounds: int
    notes: Optional[str]
    bracket_built_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# Frozen once the bracket exists
_STRUCTURAL_FIELDS = ("entrant_kind", "capacity", "bracket_mode")


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.id)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a new tournament (bracket is built separately)"""
    data = tournament_data.model_dump()
    data["entrant_kind"] = tournament_data.entrant_kind.value
    data["bracket_mode"] = tournament_data.bracket_mode.value
    tournament = Tournament(**data)
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.put("/tournaments/{tournament_id}", response_model=TournamentResponse)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, session: Session = Depends(get_session)):
    """Update a tournament; structure fields are locked after the bracket is built"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    update_data = tournament_data.model_dump(exclude_unset=True)
    if tournament.bracket_built_at is not None:
        locked = [
            f for f in _STRUCTURAL_FIELDS if f in update_data and update_data[f] != getattr(tournament, f)
        ]
        if locked:
            raise HTTPException(
                status_code=409,
                detail=f"BRACKET_BUILT: cannot change {', '.join(locked)} after the bracket is built",
            )

    for field, value in update_data.items():
        setattr(tournament, field, value.value if hasattr(value, "value") else value)

    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Delete a tournament with its matches and registrations"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    try:
        # Children before parent
        session.execute(delete(Match).where(Match.tournament_id == tournament_id))
        session.execute(delete(Registration).where(Registration.tournament_id == tournament_id))
        session.delete(tournament)
        session.commit()
    except Exception as e:
        session.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to delete tournament: {str(e)}")
    return None
