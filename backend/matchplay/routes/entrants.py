from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from matchplay.database import get_session
from matchplay.models.entrant import Entrant
from matchplay.models.player import Player
from matchplay.models.tournament import EntrantKind
from matchplay.services.seeding import competitor_from_entrant

router = APIRouter()


class PlayerCreate(BaseModel):
    name: str
    ranking: float = 0.0

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class PlayerResponse(BaseModel):
    id: int
    name: str
    ranking: float
    created_at: datetime

    class Config:
        from_attributes = True


class EntrantCreate(BaseModel):
    name: Optional[str] = None
    kind: EntrantKind
    player_a_id: int
    player_b_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_members(self):
        if self.kind == EntrantKind.pair:
            if self.player_b_id is None:
                raise ValueError("pair entrants need player_b_id")
            if self.player_b_id == self.player_a_id:
                raise ValueError("pair entrants need two different players")
        elif self.player_b_id is not None:
            raise ValueError("individual entrants take a single player")
        return self


class EntrantResponse(BaseModel):
    id: int
    name: str
    kind: str
    player_a_id: int
    player_b_id: Optional[int] = None
    effective_ranking: float


def _entrant_response(entrant: Entrant) -> EntrantResponse:
    return EntrantResponse(
        id=entrant.id,
        name=entrant.name,
        kind=entrant.kind,
        player_a_id=entrant.player_a_id,
        player_b_id=entrant.player_b_id,
        effective_ranking=competitor_from_entrant(entrant).effective_ranking,
    )


@router.get("/players", response_model=List[PlayerResponse])
def list_players(session: Session = Depends(get_session)):
    """List players, best ranking first"""
    return session.exec(select(Player).order_by(Player.ranking, Player.id)).all()


@router.post("/players", response_model=PlayerResponse, status_code=201)
def create_player(player_data: PlayerCreate, session: Session = Depends(get_session)):
    player = Player(**player_data.model_dump())
    session.add(player)
    session.commit()
    session.refresh(player)
    return player


@router.get("/entrants", response_model=List[EntrantResponse])
def list_entrants(session: Session = Depends(get_session)):
    entrants = session.exec(select(Entrant).order_by(Entrant.id)).all()
    return [_entrant_response(e) for e in entrants]


@router.post("/entrants", response_model=EntrantResponse, status_code=201)
def create_entrant(entrant_data: EntrantCreate, session: Session = Depends(get_session)):
    """Create an individual (one player) or pair (two players) entrant"""
    player_a = session.get(Player, entrant_data.player_a_id)
    if not player_a:
        raise HTTPException(status_code=404, detail=f"Player {entrant_data.player_a_id} not found")
    player_b = None
    if entrant_data.player_b_id is not None:
        player_b = session.get(Player, entrant_data.player_b_id)
        if not player_b:
            raise HTTPException(status_code=404, detail=f"Player {entrant_data.player_b_id} not found")

    name = entrant_data.name
    if not name:
        name = player_a.name if player_b is None else f"{player_a.name} & {player_b.name}"

    entrant = Entrant(
        name=name,
        kind=entrant_data.kind.value,
        player_a_id=player_a.id,
        player_b_id=player_b.id if player_b else None,
    )
    session.add(entrant)
    session.commit()
    session.refresh(entrant)
    return _entrant_response(entrant)
