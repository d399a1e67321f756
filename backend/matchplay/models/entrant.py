from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

from matchplay.models.tournament import EntrantKind

if TYPE_CHECKING:
    from matchplay.models.player import Player
    from matchplay.models.registration import Registration


class Entrant(SQLModel, table=True):
    """A competitor unit: one player (individual) or two players (pair)."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    kind: EntrantKind = Field(sa_column=Column(String, nullable=False))
    player_a_id: int = Field(foreign_key="player.id")
    player_b_id: Optional[int] = Field(default=None, foreign_key="player.id")  # pair only
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    player_a: "Player" = Relationship(sa_relationship_kwargs={"foreign_keys": "Entrant.player_a_id"})
    player_b: Optional["Player"] = Relationship(sa_relationship_kwargs={"foreign_keys": "Entrant.player_b_id"})
    registrations: List["Registration"] = Relationship(back_populates="entrant")
