import math
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from matchplay.models.match import Match
    from matchplay.models.registration import Registration


class EntrantKind(str, Enum):
    individual = "individual"
    pair = "pair"


class BracketMode(str, Enum):
    full = "full"  # every round built up front
    incremental = "incremental"  # round 1 built, later rounds created by reconciliation


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    entrant_kind: EntrantKind = Field(sa_column=Column(String, nullable=False))
    capacity: int
    bracket_mode: BracketMode = Field(default=BracketMode.full.value, sa_column=Column(String, nullable=False))
    notes: Optional[str] = None

    # Set once the bracket exists; capacity and entrant_kind are frozen after that
    bracket_built_at: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    registrations: List["Registration"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")

    @property
    def total_rounds(self) -> int:
        return math.ceil(math.log2(self.capacity)) if self.capacity and self.capacity > 1 else 0
