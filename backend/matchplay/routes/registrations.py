from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session, func, select

from matchplay.database import get_session
from matchplay.models.entrant import Entrant
from matchplay.models.registration import Registration
from matchplay.models.tournament import Tournament

router = APIRouter()


class RegistrationCreate(BaseModel):
    entrant_id: int
    position: Optional[int] = None

    @field_validator("position")
    @classmethod
    def validate_position(cls, v):
        if v is not None and v < 1:
            raise ValueError("position must be >= 1")
        return v


class RegistrationResponse(BaseModel):
    id: int
    tournament_id: int
    entrant_id: int
    position: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


def _get_open_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    if tournament.bracket_built_at is not None:
        raise HTTPException(
            status_code=409,
            detail="BRACKET_BUILT: registrations are locked once the bracket is built",
        )
    return tournament


@router.get("/tournaments/{tournament_id}/registrations", response_model=List[RegistrationResponse])
def list_registrations(tournament_id: int, session: Session = Depends(get_session)):
    """List registrations in registration order"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return session.exec(
        select(Registration)
        .where(Registration.tournament_id == tournament_id)
        .order_by(Registration.created_at, Registration.id)
    ).all()


@router.post(
    "/tournaments/{tournament_id}/registrations",
    response_model=RegistrationResponse,
    status_code=201,
)
def create_registration(
    tournament_id: int,
    payload: RegistrationCreate,
    session: Session = Depends(get_session),
):
    """Register an entrant; kind must match the tournament and the roster must have room"""
    tournament = _get_open_tournament(session, tournament_id)

    entrant = session.get(Entrant, payload.entrant_id)
    if not entrant:
        raise HTTPException(status_code=404, detail="Entrant not found")
    if entrant.kind != tournament.entrant_kind:
        raise HTTPException(
            status_code=422,
            detail=f"Entrant kind '{entrant.kind}' does not match tournament kind '{tournament.entrant_kind}'",
        )

    existing = session.exec(
        select(Registration).where(
            Registration.tournament_id == tournament_id,
            Registration.entrant_id == payload.entrant_id,
        )
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Entrant is already registered")

    if payload.position is not None:
        taken = session.exec(
            select(Registration).where(
                Registration.tournament_id == tournament_id,
                Registration.position == payload.position,
            )
        ).first()
        if taken:
            raise HTTPException(status_code=409, detail=f"Seeding position {payload.position} is taken")

    count = session.exec(
        select(func.count(Registration.id)).where(Registration.tournament_id == tournament_id)
    ).one()
    if count >= tournament.capacity:
        raise HTTPException(status_code=422, detail=f"Tournament is full ({tournament.capacity} entrants)")

    registration = Registration(tournament_id=tournament_id, **payload.model_dump())
    session.add(registration)
    session.commit()
    session.refresh(registration)
    return registration


@router.delete("/tournaments/{tournament_id}/registrations/{registration_id}", status_code=204)
def delete_registration(tournament_id: int, registration_id: int, session: Session = Depends(get_session)):
    _get_open_tournament(session, tournament_id)
    registration = session.get(Registration, registration_id)
    if not registration or registration.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Registration not found")
    session.delete(registration)
    session.commit()
    return None
