from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Player(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    ranking: float = Field(default=0.0)  # Handicap: lower = stronger
    created_at: datetime = Field(default_factory=datetime.utcnow)
