"""
Advancement: when a match completes, write its winner into the next winners
slot and drop its loser into the linked consolation slot.

Slot choice follows the parity rule (odd position -> team_a, even -> team_b;
inverted for losers). This is the only way team slots past round 1 get filled.

The pure helpers (advance / retract) work on match-like objects keyed by id;
the session helpers load and lock the tournament's match set around them.
"""
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlmodel import Session, select

from cornhole_bracket.exceptions import ConsistencyError, InvalidStateError
from cornhole_bracket.models.match import STATUS_COMPLETE, STATUS_IN_PROGRESS, STATUS_PENDING, Match
from cornhole_bracket.services.bracket_topology import loser_slot, winner_slot

logger = logging.getLogger(__name__)


def _outputs(match: Any) -> Iterator[Tuple[Optional[Any], str, Optional[int]]]:
    """(target id, slot, team) for the winner and loser of a match."""
    yield match.next_winner_match_id, winner_slot(match.position_in_round), match.winner_id
    yield match.next_loser_match_id, loser_slot(match.position_in_round), match.loser_id


def _is_played(match: Any) -> bool:
    return match.status == STATUS_IN_PROGRESS or (
        match.status == STATUS_COMPLETE and match.loser_id is not None
    )


def advance(
    match: Any,
    matches_by_id: Dict[Any, Any],
    strict: bool = False,
    fill_only: bool = False,
    skipped: Optional[List[Tuple[Any, str, int]]] = None,
) -> int:
    """
    Write a completed match's winner/loser into its downstream slots.

    Only pending targets are written; a started or finished match keeps its
    teams. Within a pending target the last writer wins and displacing a
    different team is logged. fill_only=True writes empty slots only.
    Refused writes are appended to ``skipped`` as (target id, slot, team);
    with strict=True they raise ConsistencyError instead.
    Returns the number of slots whose value changed.
    """
    written = 0
    for target_id, slot, team_id in _outputs(match):
        if target_id is None or team_id is None:
            continue
        target = matches_by_id.get(target_id)
        if target is None:
            continue
        current = getattr(target, slot)
        if current == team_id:
            continue
        if target.status != STATUS_PENDING or (fill_only and current is not None):
            if strict:
                raise ConsistencyError(
                    f"Match {target_id} ({target.status}) {slot} holds team {current}; refusing to write {team_id}"
                )
            logger.warning(
                "Slot write refused: match %s (%s) %s keeps %s, dropped %s (from match %s)",
                target_id, target.status, slot, current, team_id, match.id,
            )
            if skipped is not None:
                skipped.append((target_id, slot, team_id))
            continue
        if current is not None:
            if strict:
                raise ConsistencyError(
                    f"Match {target_id} {slot} already holds team {current}; refusing to write {team_id}"
                )
            logger.warning(
                "Slot overwrite: match %s %s %s -> %s (from match %s)",
                target_id, slot, current, team_id, match.id,
            )
        setattr(target, slot, team_id)
        written += 1
    return written


def check_retractable(match: Any, matches_by_id: Dict[Any, Any]) -> None:
    """Raise InvalidStateError if a downstream match already used this match's output."""
    for target_id, slot, team_id in _outputs(match):
        if target_id is None or team_id is None:
            continue
        target = matches_by_id.get(target_id)
        if target is None or getattr(target, slot) != team_id:
            continue
        if _is_played(target):
            raise InvalidStateError(
                f"Match {target_id} has already been played with team {team_id}; reset it first"
            )
        if target.status == STATUS_COMPLETE:
            # Auto-resolved bye downstream; it is rolled back with us
            check_retractable(target, matches_by_id)


def retract(match: Any, matches_by_id: Dict[Any, Any]) -> List[Any]:
    """
    Remove this match's propagated winner/loser from downstream slots.

    Downstream byes that consumed the team are reset to pending and retracted
    in turn. Call check_retractable first; this function does not validate.
    Returns every downstream match it modified.
    """
    touched: List[Any] = []
    for target_id, slot, team_id in _outputs(match):
        if target_id is None or team_id is None:
            continue
        target = matches_by_id.get(target_id)
        if target is None or getattr(target, slot) != team_id:
            continue
        if target.status == STATUS_COMPLETE:
            touched.extend(retract(target, matches_by_id))
            target.status = STATUS_PENDING
            target.winner_id = None
            target.loser_id = None
            target.completed_at = None
        setattr(target, slot, None)
        touched.append(target)
    return touched


# -----------------------------------------------------------------------------
# Session helpers
# -----------------------------------------------------------------------------


def load_match_map(session: Session, tournament_id: int, lock: bool = False) -> Dict[int, Match]:
    """All matches of a tournament by id. lock=True takes row locks (FOR UPDATE) where supported."""
    stmt = select(Match).where(Match.tournament_id == tournament_id).order_by(Match.match_number)
    if lock:
        stmt = stmt.with_for_update()
    return {m.id: m for m in session.exec(stmt).all()}


def resolve_all_dependencies(session: Session, tournament_id: int) -> Dict:
    """
    Re-run advancement for every completed match of a tournament (repair).

    Returns:
        Dict with:
        - matches_processed: completed matches examined
        - teams_advanced: empty downstream slots that were filled
        - slots_skipped: writes refused because the target already
          started, finished or holds a different team
        - unknown_before / unknown_after: matches with an unassigned slot

    Guarantees:
        - Only fills empty slots of pending matches; never displaces a team
        - Idempotent (safe to call multiple times)
        - Deterministic ordering (processes by match_number)
    """
    matches = load_match_map(session, tournament_id, lock=True)
    unknown_before = sum(1 for m in matches.values() if m.team_a_id is None or m.team_b_id is None)

    matches_processed = 0
    teams_advanced = 0
    skipped: List[Tuple[Any, str, int]] = []
    for match in sorted(matches.values(), key=lambda m: m.match_number):
        if match.status != STATUS_COMPLETE or match.winner_id is None:
            continue
        teams_advanced += advance(match, matches, fill_only=True, skipped=skipped)
        matches_processed += 1

    for m in matches.values():
        session.add(m)
    session.commit()

    unknown_after = sum(1 for m in matches.values() if m.team_a_id is None or m.team_b_id is None)
    return {
        "matches_processed": matches_processed,
        "teams_advanced": teams_advanced,
        "slots_skipped": len(skipped),
        "unknown_before": unknown_before,
        "unknown_after": unknown_after,
    }
