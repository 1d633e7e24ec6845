from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from cornhole_bracket.models.tournament import Tournament


class Team(SQLModel, table=True):
    __table_args__ = (
        # Team names are unique within a tournament
        SAUniqueConstraint("tournament_id", "name", name="uq_tournament_team_name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str
    seed_number: Optional[int] = Field(default=None)  # 1-based (1=strongest); null = roster order
    player1_id: Optional[int] = Field(default=None, foreign_key="player.id")
    player2_id: Optional[int] = Field(default=None, foreign_key="player.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)  # Registration time, seeding tie-break

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="teams")
