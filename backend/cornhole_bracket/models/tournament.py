from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from cornhole_bracket.models.match import Match
    from cornhole_bracket.models.team import Team

BRACKET_STATUS_NONE = "none"
BRACKET_STATUS_DRAFT = "draft"
BRACKET_STATUS_PUBLISHED = "published"

REGISTRATION_OPEN = "open"
REGISTRATION_CLOSED = "closed"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    bracket_status: str = Field(default=BRACKET_STATUS_NONE)  # none | draft | published
    registration_status: str = Field(default=REGISTRATION_OPEN)  # open | closed
    event_date: Optional[datetime] = Field(default=None)  # Scheduled/actual start; null = not live
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    teams: List["Team"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")
