from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from matchplay.models.entrant import Entrant
    from matchplay.models.tournament import Tournament


class Registration(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "entrant_id", name="uq_registration_entrant"),
        # Explicit seeding positions are unique within a tournament (where not null)
        SAUniqueConstraint("tournament_id", "position", name="uq_registration_position"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    entrant_id: int = Field(foreign_key="entrant.id")
    position: Optional[int] = Field(default=None)  # 1-based explicit seeding position
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="registrations")
    entrant: "Entrant" = Relationship(back_populates="registrations")
