from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from cornhole_bracket.models.team import Team
    from cornhole_bracket.models.tournament import Tournament

BRACKET_WINNERS = "winners"
BRACKET_CONSOLATION = "consolation"

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETE = "complete"


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    bracket_type: str  # "winners" | "consolation"
    round_number: int  # 1-based within its bracket side
    match_number: int  # Global ordinal assigned at generation
    position_in_round: int  # 1-based; parity picks the downstream slot

    # Team assignments (null = not yet determined, or absent for byes)
    team_a_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team_b_id: Optional[int] = Field(default=None, foreign_key="team.id")

    score_a: Optional[int] = Field(default=None)
    score_b: Optional[int] = Field(default=None)
    winner_id: Optional[int] = Field(default=None, foreign_key="team.id")
    loser_id: Optional[int] = Field(default=None, foreign_key="team.id")

    # Forward pointers; null only on the two finals
    next_winner_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    next_loser_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    is_finals: bool = Field(default=False)

    status: str = Field(default=STATUS_PENDING)  # pending | in_progress | complete
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    started_by: Optional[int] = Field(default=None, foreign_key="player.id")

    # Compare-and-swap token, bumped on every state transition
    version: int = Field(default=1)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
    team_a: Optional["Team"] = Relationship(sa_relationship_kwargs={"foreign_keys": "Match.team_a_id"})
    team_b: Optional["Team"] = Relationship(sa_relationship_kwargs={"foreign_keys": "Match.team_b_id"})

    @property
    def is_bye(self) -> bool:
        """Completed without an opponent (auto-resolved)."""
        return self.status == STATUS_COMPLETE and self.winner_id is not None and self.loser_id is None

    @property
    def has_been_played(self) -> bool:
        return self.status == STATUS_IN_PROGRESS or (self.status == STATUS_COMPLETE and self.loser_id is not None)
