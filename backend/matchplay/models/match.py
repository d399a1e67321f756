from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from matchplay.models.tournament import Tournament


class MatchStatus(str, Enum):
    pending = "pending"
    scheduled = "scheduled"
    completed = "completed"


class Match(SQLModel, table=True):
    # One row per bracket position; a second insert of the same round fails here
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "round_number", "match_number", name="uq_match_position"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    round_number: int  # 1-based
    match_number: int  # 1-based within round

    # Slots: entrant reference, or null with placeholder text while awaiting advancement
    slot1_entrant_id: Optional[int] = Field(default=None, foreign_key="entrant.id")
    slot2_entrant_id: Optional[int] = Field(default=None, foreign_key="entrant.id")
    placeholder_slot1: Optional[str] = Field(default=None)
    placeholder_slot2: Optional[str] = Field(default=None)

    status: str = Field(default=MatchStatus.pending.value)  # "pending" | "scheduled" | "completed"
    winner_entrant_id: Optional[int] = Field(default=None, foreign_key="entrant.id")
    is_bye: bool = Field(default=False)
    score_json: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Forward edge into round + 1, and the inverse back edges
    feeds_to_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    feeds_to_position: Optional[int] = Field(default=None)  # 1 | 2
    previous_match_1_id: Optional[int] = Field(default=None, foreign_key="match.id")
    previous_match_2_id: Optional[int] = Field(default=None, foreign_key="match.id")

    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
