"""
Match State Machine: pending -> in_progress -> complete, plus admin reset.

Every transition is a compare-and-swap on Match.version so two clients racing
on the same match cannot both win; the loser gets ConcurrentUpdateError and
no state change. The tournament's match set is loaded FOR UPDATE before any
downstream slot is written, serializing advancement per tournament.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlmodel import Session

from cornhole_bracket.exceptions import (
    AlreadyCompleteError,
    AlreadyStartedError,
    ConcurrentUpdateError,
    InvalidStateError,
    NegativeScoreError,
    NotFoundError,
    TeamsNotAssignedError,
    TieScoreError,
    UnauthorizedError,
)
from cornhole_bracket.models.match import STATUS_COMPLETE, STATUS_IN_PROGRESS, STATUS_PENDING, Match
from cornhole_bracket.services.advancement_service import advance, check_retractable, load_match_map, retract
from cornhole_bracket.services.bye_resolver import resolve_byes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Who is asking: a player, whether they are an admin, and their team."""

    player_id: Optional[int]
    is_admin: bool = False
    team_id: Optional[int] = None

    def is_member_of(self, match: Any) -> bool:
        return self.team_id is not None and self.team_id in (match.team_a_id, match.team_b_id)

    def can_play(self, match: Any) -> bool:
        return self.is_admin or self.is_member_of(match)


@dataclass
class CompletionResult:
    match: Match
    winner_id: int
    loser_id: int
    advanced_count: int = 0
    byes_resolved: List[int] = field(default_factory=list)


def _get_match(matches: Dict[int, Match], match_id: int) -> Match:
    match = matches.get(match_id)
    if match is None:
        raise NotFoundError(f"Match {match_id} not found")
    return match


def _compare_and_swap(session: Session, match: Match, **values: Any) -> None:
    """UPDATE match SET ... WHERE id = :id AND version = :seen; miss -> ConcurrentUpdateError."""
    session.flush()
    seen = match.version
    table = Match.__table__
    stmt = (
        update(table)
        .where(table.c.id == match.id, table.c.version == seen)
        .values(version=seen + 1, updated_at=datetime.utcnow(), **values)
    )
    result = session.connection().execute(stmt)
    if result.rowcount != 1:
        session.rollback()
        logger.warning("CAS miss on match %s (version %s)", match.id, seen)
        raise ConcurrentUpdateError(f"Match {match.id} was modified by another request")
    session.refresh(match)


def start_match(session: Session, tournament_id: int, match_id: int, actor: Actor) -> Match:
    """Any player in the match, or an admin, can start it."""
    matches = load_match_map(session, tournament_id, lock=True)
    match = _get_match(matches, match_id)

    if match.status != STATUS_PENDING:
        raise AlreadyStartedError("Match has already been started")
    if match.team_a_id is None or match.team_b_id is None:
        raise TeamsNotAssignedError("Both teams must be assigned to start the match")
    if not actor.can_play(match):
        raise UnauthorizedError("You must be on one of the teams to start this match")

    _compare_and_swap(
        session,
        match,
        status=STATUS_IN_PROGRESS,
        started_at=datetime.utcnow(),
        started_by=actor.player_id,
    )
    session.commit()
    session.refresh(match)
    logger.info("Match %s started by player %s", match.id, actor.player_id)
    return match


def validate_scores(score_a: int, score_b: int) -> None:
    if score_a < 0 or score_b < 0:
        raise NegativeScoreError("Scores cannot be negative")
    if score_a == score_b:
        raise TieScoreError("Scores cannot be tied")


def complete_match(
    session: Session,
    tournament_id: int,
    match_id: int,
    score_a: int,
    score_b: int,
    actor: Actor,
    strict: bool = False,
) -> CompletionResult:
    """
    Record the final score, then advance winner and loser.

    Admins may re-complete a finished match to correct it: the previous
    advancement is retracted first, which is refused once a downstream match
    has been played with the propagated team.
    """
    matches = load_match_map(session, tournament_id, lock=True)
    match = _get_match(matches, match_id)

    correcting = match.status == STATUS_COMPLETE
    if correcting and not actor.is_admin:
        raise AlreadyCompleteError("Match has already been completed")
    if match.team_a_id is None or match.team_b_id is None:
        raise TeamsNotAssignedError("Both teams must be assigned to complete the match")
    if not actor.can_play(match):
        raise UnauthorizedError("You must be on one of the teams to complete this match")
    if match.status == STATUS_PENDING:
        raise InvalidStateError("Match must be started before it can be completed")
    validate_scores(score_a, score_b)

    if correcting:
        check_retractable(match, matches)
        retract(match, matches)

    winner_id = match.team_a_id if score_a > score_b else match.team_b_id
    loser_id = match.team_b_id if score_a > score_b else match.team_a_id

    _compare_and_swap(
        session,
        match,
        score_a=score_a,
        score_b=score_b,
        winner_id=winner_id,
        loser_id=loser_id,
        status=STATUS_COMPLETE,
        completed_at=datetime.utcnow(),
    )

    advanced_count = advance(match, matches, strict=strict)
    byes = resolve_byes(list(matches.values()))
    session.commit()
    session.refresh(match)

    logger.info(
        "Match %s complete %s-%s winner=%s loser=%s advanced=%d byes=%d",
        match.id, score_a, score_b, winner_id, loser_id, advanced_count, len(byes),
    )
    return CompletionResult(
        match=match,
        winner_id=winner_id,
        loser_id=loser_id,
        advanced_count=advanced_count,
        byes_resolved=[m.id for m in byes],
    )


def reset_match(session: Session, tournament_id: int, match_id: int, actor: Actor) -> Match:
    """
    Admin only. Clear the result and return the match to pending.

    A completed match first pulls its winner/loser back out of the downstream
    slots; refused if a downstream match was already played with them.
    """
    if not actor.is_admin:
        raise UnauthorizedError("Only admins can reset match scores")

    matches = load_match_map(session, tournament_id, lock=True)
    match = _get_match(matches, match_id)

    if match.is_bye:
        raise InvalidStateError("Bye matches are resolved automatically and cannot be reset")

    if match.status == STATUS_COMPLETE:
        check_retractable(match, matches)
        retract(match, matches)

    _compare_and_swap(
        session,
        match,
        score_a=None,
        score_b=None,
        winner_id=None,
        loser_id=None,
        status=STATUS_PENDING,
        started_at=None,
        started_by=None,
        completed_at=None,
    )
    session.commit()
    session.refresh(match)
    logger.info("Match %s reset by admin %s", match.id, actor.player_id)
    return match
