"""
Bye Resolver: auto-complete matches whose opponent can never arrive.

Works on any match-like objects carrying the Match attribute names, so the
same code runs over freshly built MatchNodes and over persisted Match rows.

A slot is dead when it is empty and nothing can ever fill it:
- it has no feeder at all (an absent round-1 seed), or
- every feeder is complete without producing the output routed here
  (a bye has no loser), or is itself a dead match.

A pending match holding exactly one team opposite a dead slot is completed
as a bye: winner = the present team, loser/scores left null, winner
propagated one hop. Resolution repeats until nothing changes, so a chain of
byes propagates until it meets a real matchup or a final.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from cornhole_bracket.models.match import STATUS_COMPLETE, STATUS_PENDING
from cornhole_bracket.services.advancement_service import advance
from cornhole_bracket.services.bracket_topology import SLOT_A, SLOT_B, loser_slot, winner_slot

logger = logging.getLogger(__name__)

ROLE_WINNER = "WINNER"
ROLE_LOSER = "LOSER"

FeederMap = Dict[Tuple[Any, str], List[Tuple[Any, str]]]


def build_feeder_map(matches: Iterable[Any]) -> FeederMap:
    """(target match id, slot) -> [(source match, role), ...] as wired at generation."""
    feeders: FeederMap = {}
    for m in matches:
        if m.next_winner_match_id is not None:
            key = (m.next_winner_match_id, winner_slot(m.position_in_round))
            feeders.setdefault(key, []).append((m, ROLE_WINNER))
        if m.next_loser_match_id is not None:
            key = (m.next_loser_match_id, loser_slot(m.position_in_round))
            feeders.setdefault(key, []).append((m, ROLE_LOSER))
    return feeders


def is_slot_dead(match: Any, slot: str, feeders: FeederMap) -> bool:
    if getattr(match, slot) is not None:
        return False
    sources = feeders.get((match.id, slot), [])
    if not sources:
        return True
    return all(_is_feeder_exhausted(src, role, feeders) for src, role in sources)


def is_match_dead(match: Any, feeders: FeederMap) -> bool:
    """Pending, empty, and neither slot can ever be filled."""
    return (
        match.status == STATUS_PENDING
        and is_slot_dead(match, SLOT_A, feeders)
        and is_slot_dead(match, SLOT_B, feeders)
    )


def _is_feeder_exhausted(source: Any, role: str, feeders: FeederMap) -> bool:
    if source.status == STATUS_COMPLETE:
        output = source.winner_id if role == ROLE_WINNER else source.loser_id
        return output is None
    return is_match_dead(source, feeders)


def _bye_team(match: Any, feeders: FeederMap) -> Optional[int]:
    if match.status != STATUS_PENDING:
        return None
    a, b = match.team_a_id, match.team_b_id
    if (a is None) == (b is None):
        return None
    empty_slot = SLOT_B if a is not None else SLOT_A
    if not is_slot_dead(match, empty_slot, feeders):
        return None
    return a if a is not None else b


def resolve_byes(matches: List[Any], now: Optional[datetime] = None) -> List[Any]:
    """
    Complete every bye in the match set (in place) and propagate winners.

    Total over any well-formed match set; zero byes is a no-op.
    Returns the matches resolved, in resolution order.
    """
    now = now or datetime.utcnow()
    by_id = {m.id: m for m in matches}
    ordered = sorted(matches, key=lambda m: m.match_number)
    resolved: List[Any] = []

    feeders = build_feeder_map(ordered)
    changed = True
    while changed:
        changed = False
        for match in ordered:
            team_id = _bye_team(match, feeders)
            if team_id is None:
                continue
            match.status = STATUS_COMPLETE
            match.winner_id = team_id
            match.loser_id = None
            match.completed_at = now
            advance(match, by_id)
            resolved.append(match)
            changed = True
            logger.info(
                "Bye resolved: match #%s (%s R%s) winner=%s -> next=%s",
                match.match_number, match.bracket_type, match.round_number,
                team_id, match.next_winner_match_id,
            )

    return resolved
