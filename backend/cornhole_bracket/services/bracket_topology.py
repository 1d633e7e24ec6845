"""
Bracket Topology Builder: single source of truth for the match graph.

Given an ordered roster of eligible teams, builds every match of a
double-elimination bracket (winners + consolation sides) with forward-only
advancement pointers. Pure: no session, no I/O. Node ids are deterministic
strings ("W2-1" = winners round 2, position 1; "C1-3" = consolation round 1,
position 3); the persistence layer maps them onto database ids.

Shape for bracket size B:
- Winners: log2(B) rounds of B/2, B/4, ..., 1 matches (last = championship final).
- Consolation: [1] for B=4, otherwise B/4, B/8, ..., 2, then another round
  of 2 (absorbing the winners semifinal losers), then the consolation final.
- Losers of winners round r drop into consolation round r.
- Every pointer targets index ``i * len(target_round) // len(source_round)``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from cornhole_bracket.exceptions import UnsupportedBracketSizeError
from cornhole_bracket.models.match import (
    BRACKET_CONSOLATION,
    BRACKET_WINNERS,
    STATUS_PENDING,
)

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------

SUPPORTED_BRACKET_SIZES: Tuple[int, ...] = (4, 8, 16, 32)
MIN_TEAMS = 2
MAX_TEAMS = 32

SLOT_A = "team_a_id"
SLOT_B = "team_b_id"

# Round 1 (winners) pairings by seed, in position order.
SEED_PAIRINGS: Dict[int, List[Tuple[int, int]]] = {
    4: [(1, 4), (2, 3)],
    8: [(1, 8), (4, 5), (2, 7), (3, 6)],
    16: [
        (1, 16), (8, 9), (4, 13), (5, 12),
        (2, 15), (7, 10), (3, 14), (6, 11),
    ],
    32: [
        (1, 32), (16, 17), (8, 25), (9, 24),
        (4, 29), (13, 20), (5, 28), (12, 21),
        (2, 31), (15, 18), (7, 26), (10, 23),
        (3, 30), (14, 19), (6, 27), (11, 22),
    ],
}


# -----------------------------------------------------------------------------
# Data structures
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SeededTeam:
    team_id: int
    seed: int


@dataclass
class MatchNode:
    """One match of a freshly built bracket; attribute names mirror Match."""

    id: str
    bracket_type: str
    round_number: int
    match_number: int
    position_in_round: int
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    next_winner_match_id: Optional[str] = None
    next_loser_match_id: Optional[str] = None
    is_finals: bool = False
    status: str = STATUS_PENDING
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    winner_id: Optional[int] = None
    loser_id: Optional[int] = None
    completed_at: Optional[datetime] = None


@dataclass
class BracketTopology:
    bracket_size: int
    nodes: List[MatchNode]

    def by_id(self) -> Dict[str, MatchNode]:
        return {n.id: n for n in self.nodes}

    def round(self, bracket_type: str, round_number: int) -> List[MatchNode]:
        return sorted(
            (n for n in self.nodes if n.bracket_type == bracket_type and n.round_number == round_number),
            key=lambda n: n.position_in_round,
        )

    def final(self, bracket_type: str) -> MatchNode:
        return next(n for n in self.nodes if n.bracket_type == bracket_type and n.is_finals)

    @property
    def championship_final(self) -> MatchNode:
        return self.final(BRACKET_WINNERS)

    @property
    def consolation_final(self) -> MatchNode:
        return self.final(BRACKET_CONSOLATION)


# -----------------------------------------------------------------------------
# Slot parity
# -----------------------------------------------------------------------------


def winner_slot(position_in_round: int) -> str:
    """Odd positions feed team_a, even positions feed team_b."""
    return SLOT_A if position_in_round % 2 == 1 else SLOT_B


def loser_slot(position_in_round: int) -> str:
    """
    Inverted parity for dropped losers.

    A consolation match can receive a consolation winner (normal parity) and a
    winners-bracket loser at the same time; inverting keeps them apart.
    """
    return SLOT_B if position_in_round % 2 == 1 else SLOT_A


# -----------------------------------------------------------------------------
# Sizing
# -----------------------------------------------------------------------------


def validate_bracket_size(bracket_size: int) -> None:
    if bracket_size not in SUPPORTED_BRACKET_SIZES:
        raise UnsupportedBracketSizeError(
            f"Unsupported bracket size: {bracket_size}. Supported: {list(SUPPORTED_BRACKET_SIZES)}"
        )


def bracket_size_for(team_count: int) -> int:
    """Smallest supported bracket size that holds team_count teams."""
    if team_count < MIN_TEAMS:
        raise UnsupportedBracketSizeError(f"At least {MIN_TEAMS} teams are required, got {team_count}")
    if team_count > MAX_TEAMS:
        raise UnsupportedBracketSizeError(f"At most {MAX_TEAMS} teams are supported, got {team_count}")
    for size in SUPPORTED_BRACKET_SIZES:
        if team_count <= size:
            return size
    raise UnsupportedBracketSizeError(f"No bracket size fits {team_count} teams")


def winners_round_sizes(bracket_size: int) -> List[int]:
    validate_bracket_size(bracket_size)
    sizes = []
    n = bracket_size // 2
    while n >= 1:
        sizes.append(n)
        n //= 2
    return sizes


def consolation_round_sizes(bracket_size: int) -> List[int]:
    validate_bracket_size(bracket_size)
    if bracket_size == 4:
        return [1]
    sizes = []
    n = bracket_size // 4
    while n >= 2:
        sizes.append(n)
        n //= 2
    return sizes + [2, 1]


def total_match_count(bracket_size: int) -> int:
    """4 -> 4, 8 -> 12, 16 -> 24, 32 -> 48."""
    return sum(winners_round_sizes(bracket_size)) + sum(consolation_round_sizes(bracket_size))


def seeding_pairs(bracket_size: int) -> List[Tuple[int, int]]:
    validate_bracket_size(bracket_size)
    return list(SEED_PAIRINGS[bracket_size])


# -----------------------------------------------------------------------------
# Seeding
# -----------------------------------------------------------------------------


def assign_seeds(teams: Sequence[Any]) -> List[SeededTeam]:
    """
    Resolve the effective seed of every team in an ordered roster.

    Roster items need ``id`` and ``seed_number``. A missing seed becomes the
    team's 1-based roster position (or the next unused number if an explicit
    seed already holds it). The result is then compacted to 1..N in seed
    order, roster order breaking ties, so every team lands in exactly one
    round-1 seat.
    """
    taken = {t.seed_number for t in teams if getattr(t, "seed_number", None) is not None}
    provisional: List[Tuple[int, int, int]] = []  # (seed, roster_index, team_id)
    next_free = 1
    for index, team in enumerate(teams):
        seed = getattr(team, "seed_number", None)
        if seed is None:
            seed = index + 1
            if seed in taken:
                while next_free in taken:
                    next_free += 1
                seed = next_free
            taken.add(seed)
        provisional.append((seed, index, team.id))

    provisional.sort()
    return [SeededTeam(team_id=team_id, seed=rank) for rank, (_, _, team_id) in enumerate(provisional, start=1)]


# -----------------------------------------------------------------------------
# Builder
# -----------------------------------------------------------------------------


def _node_id(bracket_type: str, round_number: int, position: int) -> str:
    prefix = "W" if bracket_type == BRACKET_WINNERS else "C"
    return f"{prefix}{round_number}-{position}"


def _make_rounds(bracket_type: str, sizes: List[int]) -> List[List[MatchNode]]:
    return [
        [
            MatchNode(
                id=_node_id(bracket_type, round_number, position),
                bracket_type=bracket_type,
                round_number=round_number,
                match_number=0,
                position_in_round=position,
            )
            for position in range(1, count + 1)
        ]
        for round_number, count in enumerate(sizes, start=1)
    ]


def _wire_forward(rounds: List[List[MatchNode]]) -> None:
    for r, current in enumerate(rounds):
        if r == len(rounds) - 1:
            for node in current:
                node.is_finals = True
            continue
        target = rounds[r + 1]
        for i, node in enumerate(current):
            node.next_winner_match_id = target[i * len(target) // len(current)].id


def build_topology(teams: Sequence[Any], bracket_size: Optional[int] = None) -> BracketTopology:
    """
    Build the full match set for an ordered roster of eligible teams.

    bracket_size defaults to the smallest supported size holding every team.
    Round-1 winners slots are filled from SEED_PAIRINGS; seats past the team
    count stay empty (byes). All other slots are null. Byes are NOT resolved
    here; see bye_resolver.resolve_byes.
    """
    team_count = len(teams)
    if bracket_size is None:
        bracket_size = bracket_size_for(team_count)
    validate_bracket_size(bracket_size)
    if team_count < MIN_TEAMS or team_count > bracket_size:
        raise UnsupportedBracketSizeError(
            f"Bracket size {bracket_size} cannot hold {team_count} teams"
        )

    seeded = assign_seeds(teams)
    team_by_seed = {s.seed: s.team_id for s in seeded}

    winners = _make_rounds(BRACKET_WINNERS, winners_round_sizes(bracket_size))
    consolation = _make_rounds(BRACKET_CONSOLATION, consolation_round_sizes(bracket_size))

    _wire_forward(winners)
    _wire_forward(consolation)

    # Losers of winners round r drop into consolation round r
    for r, current in enumerate(winners[:-1]):
        target = consolation[r]
        for i, node in enumerate(current):
            node.next_loser_match_id = target[i * len(target) // len(current)].id

    for node, (seed_a, seed_b) in zip(winners[0], seeding_pairs(bracket_size)):
        node.team_a_id = team_by_seed.get(seed_a)
        node.team_b_id = team_by_seed.get(seed_b)

    nodes = [node for rnd in winners + consolation for node in rnd]
    for match_number, node in enumerate(nodes, start=1):
        node.match_number = match_number

    logger.debug(
        "build_topology: teams=%d bracket_size=%d matches=%d",
        team_count, bracket_size, len(nodes),
    )
    return BracketTopology(bracket_size=bracket_size, nodes=nodes)
