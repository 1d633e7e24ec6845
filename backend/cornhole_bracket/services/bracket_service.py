"""
Bracket Service: persistence around the pure engine.

- Generation: roster -> topology -> byes -> Match rows, with the
  regeneration policy (rebuild only while nothing has been played).
- Tournament controls: reset, visibility, start/stop.
- Queries: bracket, team matches, next match, win/loss records, status.

Every operation takes an explicit tournament id.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlmodel import Session, select

from cornhole_bracket.exceptions import NotFoundError, UnauthorizedError
from cornhole_bracket.models.match import STATUS_IN_PROGRESS, STATUS_PENDING, Match
from cornhole_bracket.models.player import Player
from cornhole_bracket.models.team import Team
from cornhole_bracket.models.tournament import (
    BRACKET_STATUS_DRAFT,
    BRACKET_STATUS_NONE,
    BRACKET_STATUS_PUBLISHED,
    Tournament,
)
from cornhole_bracket.services.bracket_topology import MIN_TEAMS, bracket_size_for, build_topology
from cornhole_bracket.services.bye_resolver import resolve_byes
from cornhole_bracket.services.match_state import Actor
from cornhole_bracket.services.tournament_status import (
    TeamRecord,
    TournamentStatus,
    project_status,
    team_record,
)

logger = logging.getLogger(__name__)

OUTCOME_CREATED = "created"
OUTCOME_REGENERATED = "regenerated"
OUTCOME_UNCHANGED = "unchanged"
OUTCOME_LOCKED = "locked"
OUTCOME_NOT_ENOUGH_TEAMS = "not_enough_teams"


@dataclass
class GenerationResult:
    outcome: str
    match_count: int = 0
    bracket_size: Optional[int] = None
    warning: Optional[str] = None


# -----------------------------------------------------------------------------
# Lookups
# -----------------------------------------------------------------------------


def get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise NotFoundError(f"Tournament {tournament_id} not found")
    return tournament


def get_match(session: Session, tournament_id: int, match_id: int) -> Match:
    match = session.get(Match, match_id)
    if not match or match.tournament_id != tournament_id:
        raise NotFoundError(f"Match {match_id} not found")
    return match


def get_team(session: Session, tournament_id: int, team_id: int) -> Team:
    team = session.get(Team, team_id)
    if not team or team.tournament_id != tournament_id:
        raise NotFoundError(f"Team {team_id} not found")
    return team


def resolve_actor(session: Session, tournament_id: int, player_id: int) -> Actor:
    """Build the Actor for a player: admin flag plus their team in this tournament."""
    player = session.get(Player, player_id)
    if not player:
        raise UnauthorizedError("Unknown player")
    team = session.exec(
        select(Team).where(
            Team.tournament_id == tournament_id,
            or_(Team.player1_id == player_id, Team.player2_id == player_id),
        )
    ).first()
    return Actor(player_id=player.id, is_admin=player.is_admin, team_id=team.id if team else None)


def require_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        raise UnauthorizedError(f"Only admins can {action}")


def get_eligible_teams(session: Session, tournament_id: int) -> List[Team]:
    """Teams with both players, by seed (nulls last) then registration time."""
    return list(
        session.exec(
            select(Team)
            .where(
                Team.tournament_id == tournament_id,
                Team.player1_id.is_not(None),
                Team.player2_id.is_not(None),
            )
            .order_by(Team.seed_number.is_(None), Team.seed_number, Team.created_at, Team.id)
        ).all()
    )


# -----------------------------------------------------------------------------
# Generation
# -----------------------------------------------------------------------------


def _delete_matches(session: Session, matches: List[Match]) -> None:
    # Drop self-references first so deletes never trip the match -> match FKs
    for m in matches:
        m.next_winner_match_id = None
        m.next_loser_match_id = None
        session.add(m)
    session.flush()
    for m in matches:
        session.delete(m)
    session.flush()


def generate_bracket(session: Session, tournament_id: int, teams: List[Team]) -> List[Match]:
    """Build, resolve byes and persist a fresh match set. Does not commit."""
    topology = build_topology(teams)
    byes = resolve_byes(topology.nodes)

    rows: Dict[str, Match] = {}
    for node in topology.nodes:
        row = Match(
            tournament_id=tournament_id,
            bracket_type=node.bracket_type,
            round_number=node.round_number,
            match_number=node.match_number,
            position_in_round=node.position_in_round,
            team_a_id=node.team_a_id,
            team_b_id=node.team_b_id,
            winner_id=node.winner_id,
            loser_id=node.loser_id,
            is_finals=node.is_finals,
            status=node.status,
            completed_at=node.completed_at,
        )
        session.add(row)
        rows[node.id] = row
    session.flush()

    # Second pass: node ids -> database ids
    for node in topology.nodes:
        row = rows[node.id]
        if node.next_winner_match_id is not None:
            row.next_winner_match_id = rows[node.next_winner_match_id].id
        if node.next_loser_match_id is not None:
            row.next_loser_match_id = rows[node.next_loser_match_id].id
        session.add(row)
    session.flush()

    logger.info(
        "Generated bracket for tournament %s: teams=%d size=%d matches=%d byes=%d",
        tournament_id, len(teams), topology.bracket_size, len(rows), len(byes),
    )
    return [rows[n.id] for n in topology.nodes]


def ensure_bracket_generated(session: Session, tournament_id: int) -> GenerationResult:
    """
    Make the stored bracket match the eligible roster.

    - No bracket yet: generate one.
    - Roster unchanged: nothing to do.
    - Roster changed, nothing played: delete and rebuild from scratch.
    - Roster changed, play has begun: keep the existing bracket.
    Auto-resolved byes do not count as play.
    """
    get_tournament(session, tournament_id)
    teams = get_eligible_teams(session, tournament_id)
    existing = list(session.exec(select(Match).where(Match.tournament_id == tournament_id)).all())
    played = any(m.has_been_played for m in existing)

    if len(teams) < MIN_TEAMS:
        if existing and not played:
            _delete_matches(session, existing)
            session.commit()
        logger.info("Tournament %s: not enough teams (%d)", tournament_id, len(teams))
        return GenerationResult(outcome=OUTCOME_NOT_ENOUGH_TEAMS)

    regenerating = False
    if existing:
        in_bracket = {tid for m in existing for tid in (m.team_a_id, m.team_b_id) if tid is not None}
        current = {t.id for t in teams}
        if in_bracket == current:
            return GenerationResult(outcome=OUTCOME_UNCHANGED, match_count=len(existing))
        if played:
            logger.warning(
                "Tournament %s: roster changed (%d in bracket, %d eligible) but matches have started",
                tournament_id, len(in_bracket), len(current),
            )
            return GenerationResult(
                outcome=OUTCOME_LOCKED,
                match_count=len(existing),
                warning="Teams changed but matches have started",
            )
        logger.info("Tournament %s: roster changed, regenerating bracket", tournament_id)
        _delete_matches(session, existing)
        regenerating = True

    matches = generate_bracket(session, tournament_id, teams)
    session.commit()
    return GenerationResult(
        outcome=OUTCOME_REGENERATED if regenerating else OUTCOME_CREATED,
        match_count=len(matches),
        bracket_size=bracket_size_for(len(teams)),
    )


# -----------------------------------------------------------------------------
# Tournament controls (admin)
# -----------------------------------------------------------------------------


def reset_bracket(session: Session, tournament_id: int, actor: Actor) -> int:
    """Delete every match and return the bracket to 'none'. Returns matches deleted."""
    require_admin(actor, "reset the bracket")
    tournament = get_tournament(session, tournament_id)
    existing = list(session.exec(select(Match).where(Match.tournament_id == tournament_id)).all())
    _delete_matches(session, existing)
    tournament.bracket_status = BRACKET_STATUS_NONE
    session.add(tournament)
    session.commit()
    logger.info("Tournament %s bracket reset by admin %s (%d matches)", tournament_id, actor.player_id, len(existing))
    return len(existing)


def toggle_bracket_visibility(session: Session, tournament_id: int, actor: Actor) -> str:
    """published <-> draft (a bracket that was never shown becomes published)."""
    require_admin(actor, "change bracket visibility")
    tournament = get_tournament(session, tournament_id)
    if tournament.bracket_status == BRACKET_STATUS_PUBLISHED:
        tournament.bracket_status = BRACKET_STATUS_DRAFT
    else:
        tournament.bracket_status = BRACKET_STATUS_PUBLISHED
    session.add(tournament)
    session.commit()
    return tournament.bracket_status


def start_tournament(
    session: Session, tournament_id: int, actor: Actor, scheduled_at: Optional[datetime] = None
) -> datetime:
    require_admin(actor, "start the tournament")
    tournament = get_tournament(session, tournament_id)
    tournament.event_date = scheduled_at or datetime.utcnow()
    session.add(tournament)
    session.commit()
    return tournament.event_date


def stop_tournament(session: Session, tournament_id: int, actor: Actor) -> None:
    require_admin(actor, "stop the tournament")
    tournament = get_tournament(session, tournament_id)
    tournament.event_date = None
    session.add(tournament)
    session.commit()


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------


def list_bracket_matches(session: Session, tournament_id: int) -> List[Match]:
    """Winners first, then by round and match number."""
    return list(
        session.exec(
            select(Match)
            .where(Match.tournament_id == tournament_id)
            .order_by(Match.bracket_type.desc(), Match.round_number, Match.match_number)
        ).all()
    )


def list_team_matches(session: Session, tournament_id: int, team_id: int) -> List[Match]:
    return list(
        session.exec(
            select(Match)
            .where(
                Match.tournament_id == tournament_id,
                or_(Match.team_a_id == team_id, Match.team_b_id == team_id),
            )
            .order_by(Match.round_number, Match.match_number)
        ).all()
    )


def get_team_next_match(session: Session, tournament_id: int, team_id: int) -> Optional[Match]:
    """First pending or in-progress match for the team, winners bracket first."""
    return session.exec(
        select(Match)
        .where(
            Match.tournament_id == tournament_id,
            or_(Match.team_a_id == team_id, Match.team_b_id == team_id),
            Match.status.in_([STATUS_PENDING, STATUS_IN_PROGRESS]),
        )
        .order_by(Match.bracket_type.desc(), Match.round_number, Match.match_number)
    ).first()


def get_team_record(session: Session, tournament_id: int, team_id: int) -> TeamRecord:
    return team_record(list_team_matches(session, tournament_id, team_id), team_id)


def get_match_records(
    session: Session, tournament_id: int, match: Match, team_id: int
) -> Tuple[Optional[TeamRecord], Optional[TeamRecord]]:
    """(team's record, opponent's record) for a match; (None, None) until both teams are known."""
    if match.team_a_id is None or match.team_b_id is None:
        return None, None
    record_a = get_team_record(session, tournament_id, match.team_a_id)
    record_b = get_team_record(session, tournament_id, match.team_b_id)
    if match.team_a_id == team_id:
        return record_a, record_b
    return record_b, record_a


def get_tournament_status(session: Session, tournament_id: int, team_id: Optional[int] = None) -> TournamentStatus:
    tournament = get_tournament(session, tournament_id)
    return project_status(tournament, list_bracket_matches(session, tournament_id), team_id)
