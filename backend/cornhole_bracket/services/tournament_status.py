"""
Tournament Status Projector: read-only fold over a tournament's match set.

Derives the user-facing status, a team's 1st-4th placement and whether the
team is eliminated. Never mutates; the same inputs always give the same result.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Optional

from cornhole_bracket.models.match import BRACKET_CONSOLATION, BRACKET_WINNERS, STATUS_COMPLETE
from cornhole_bracket.models.tournament import BRACKET_STATUS_PUBLISHED

STATUS_REGISTRATION = "registration"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETE_TOURNAMENT = "complete"


@dataclass(frozen=True)
class TournamentStatus:
    status: str  # registration | in_progress | complete
    placement: Optional[int] = None  # 1..4
    is_eliminated: bool = False
    team_id: Optional[int] = None
    event_date: Optional[datetime] = None


@dataclass(frozen=True)
class TeamRecord:
    wins: int = 0
    losses: int = 0


def find_final(matches: Iterable[Any], bracket_type: str) -> Optional[Any]:
    return next((m for m in matches if m.bracket_type == bracket_type and m.is_finals), None)


def placement_for(matches: List[Any], team_id: Optional[int]) -> Optional[int]:
    if team_id is None:
        return None
    championship = find_final(matches, BRACKET_WINNERS)
    consolation = find_final(matches, BRACKET_CONSOLATION)
    if championship is not None and championship.winner_id == team_id:
        return 1
    if championship is not None and championship.loser_id == team_id:
        return 2
    if consolation is not None and consolation.winner_id == team_id:
        return 3
    if consolation is not None and consolation.loser_id == team_id:
        return 4
    return None


def is_eliminated(matches: List[Any], team_id: Optional[int]) -> bool:
    """Lost a consolation match (other than the final) and holds no placement."""
    if team_id is None or placement_for(matches, team_id) is not None:
        return False
    return any(
        m.bracket_type == BRACKET_CONSOLATION
        and m.status == STATUS_COMPLETE
        and m.loser_id == team_id
        and not m.is_finals
        for m in matches
    )


def project_status(tournament: Any, matches: List[Any], team_id: Optional[int] = None) -> TournamentStatus:
    event_date = getattr(tournament, "event_date", None) if tournament is not None else None
    if tournament is None or tournament.bracket_status != BRACKET_STATUS_PUBLISHED:
        return TournamentStatus(status=STATUS_REGISTRATION, team_id=team_id, event_date=event_date)

    championship = find_final(matches, BRACKET_WINNERS)
    consolation = find_final(matches, BRACKET_CONSOLATION)
    both_done = (
        championship is not None
        and consolation is not None
        and championship.status == STATUS_COMPLETE
        and consolation.status == STATUS_COMPLETE
    )
    return TournamentStatus(
        status=STATUS_COMPLETE_TOURNAMENT if both_done else STATUS_IN_PROGRESS,
        placement=placement_for(matches, team_id),
        is_eliminated=is_eliminated(matches, team_id),
        team_id=team_id,
        event_date=event_date,
    )


def team_record(matches: Iterable[Any], team_id: int) -> TeamRecord:
    """Wins/losses over completed matches (a bye counts as a win)."""
    wins = losses = 0
    for m in matches:
        if m.status != STATUS_COMPLETE:
            continue
        if m.winner_id == team_id:
            wins += 1
        elif m.loser_id == team_id:
            losses += 1
    return TeamRecord(wins=wins, losses=losses)
