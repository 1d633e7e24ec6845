"""Advancement: completed matches fill downstream slots; retraction undoes it."""
from dataclasses import dataclass
from typing import Optional

import pytest
from sqlmodel import Session, select

from cornhole_bracket.exceptions import ConsistencyError, InvalidStateError
from cornhole_bracket.models.match import (
    BRACKET_CONSOLATION,
    BRACKET_WINNERS,
    STATUS_COMPLETE,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    Match,
)
from cornhole_bracket.services.advancement_service import (
    advance,
    check_retractable,
    resolve_all_dependencies,
    retract,
)
from cornhole_bracket.services.bracket_service import ensure_bracket_generated
from cornhole_bracket.services.bracket_topology import build_topology
from cornhole_bracket.services.bye_resolver import resolve_byes
from cornhole_bracket.services.match_state import complete_match, start_match
from tests.conftest import admin_actor, make_teams


@dataclass
class FakeTeam:
    id: int
    seed_number: Optional[int] = None


def built(count):
    topology = build_topology([FakeTeam(id=i, seed_number=i) for i in range(1, count + 1)])
    return topology, topology.by_id()


def finish(node, winner_id, loser_id):
    node.status = STATUS_COMPLETE
    node.winner_id = winner_id
    node.loser_id = loser_id


def round_of(session: Session, tournament_id: int, bracket_type: str, round_number: int):
    return session.exec(
        select(Match)
        .where(
            Match.tournament_id == tournament_id,
            Match.bracket_type == bracket_type,
            Match.round_number == round_number,
        )
        .order_by(Match.position_in_round)
    ).all()


def play_round(session: Session, tournament_id: int, bracket_type: str, round_number: int, actor):
    for match in round_of(session, tournament_id, bracket_type, round_number):
        start_match(session, tournament_id, match.id, actor)
        complete_match(session, tournament_id, match.id, 21, 10, actor)


# ============================================================================
# advance
# ============================================================================


class TestAdvance:
    def test_winner_and_loser_follow_parity(self):
        _, by_id = built(8)
        finish(by_id["W1-1"], 1, 8)
        assert advance(by_id["W1-1"], by_id) == 2
        assert by_id["W2-1"].team_a_id == 1
        assert by_id["C1-1"].team_b_id == 8

        finish(by_id["W1-2"], 4, 5)
        advance(by_id["W1-2"], by_id)
        assert by_id["W2-1"].team_b_id == 4
        assert by_id["C1-1"].team_a_id == 5

    def test_same_team_rewrite_is_a_no_op(self):
        _, by_id = built(8)
        finish(by_id["W1-1"], 1, 8)
        advance(by_id["W1-1"], by_id)
        assert advance(by_id["W1-1"], by_id) == 0

    def test_final_has_nowhere_to_go(self):
        topology, by_id = built(4)
        final = topology.championship_final
        final.team_a_id, final.team_b_id = 1, 2
        finish(final, 1, 2)
        assert advance(final, by_id) == 0

    def test_displacement_overwrites_by_default(self):
        _, by_id = built(8)
        by_id["W2-1"].team_a_id = 99
        finish(by_id["W1-1"], 1, 8)
        advance(by_id["W1-1"], by_id)
        assert by_id["W2-1"].team_a_id == 1

    def test_displacement_refused_in_strict_mode(self):
        _, by_id = built(8)
        by_id["W2-1"].team_a_id = 99
        finish(by_id["W1-1"], 1, 8)
        with pytest.raises(ConsistencyError):
            advance(by_id["W1-1"], by_id, strict=True)

    def test_sixteen_team_consolation_collision_is_last_writer_wins(self):
        _, by_id = built(16)
        # C1-1 and C1-2 winners both target C2-1; positions 1 and 2 map to different slots
        finish(by_id["C1-1"], 11, 12)
        finish(by_id["C1-2"], 13, 14)
        advance(by_id["C1-1"], by_id)
        advance(by_id["C1-2"], by_id)
        # W2-1's loser lands in team_b of C2-1, displacing the C1-2 winner
        finish(by_id["W2-1"], 1, 8)
        advance(by_id["W2-1"], by_id)
        assert by_id["C2-1"].team_a_id == 11
        assert by_id["C2-1"].team_b_id == 8

    def test_sixteen_team_collision_strict(self):
        _, by_id = built(16)
        finish(by_id["C1-2"], 13, 14)
        advance(by_id["C1-2"], by_id)
        finish(by_id["W2-1"], 1, 8)
        with pytest.raises(ConsistencyError):
            advance(by_id["W2-1"], by_id, strict=True)

    def test_started_target_keeps_its_teams(self):
        _, by_id = built(8)
        by_id["W2-1"].team_a_id = 99
        by_id["W2-1"].team_b_id = 4
        by_id["W2-1"].status = STATUS_IN_PROGRESS
        finish(by_id["W1-1"], 1, 8)

        skipped = []
        assert advance(by_id["W1-1"], by_id, skipped=skipped) == 1
        assert by_id["W2-1"].team_a_id == 99
        assert by_id["C1-1"].team_b_id == 8
        assert skipped == [("W2-1", "team_a_id", 1)]

    def test_started_target_refused_in_strict_mode(self):
        _, by_id = built(8)
        by_id["W2-1"].status = STATUS_IN_PROGRESS
        finish(by_id["W1-1"], 1, 8)
        with pytest.raises(ConsistencyError):
            advance(by_id["W1-1"], by_id, strict=True)
        assert by_id["W2-1"].team_a_id is None

    def test_fill_only_never_displaces(self):
        _, by_id = built(8)
        by_id["W2-1"].team_a_id = 99
        finish(by_id["W1-1"], 1, 8)

        skipped = []
        assert advance(by_id["W1-1"], by_id, fill_only=True, skipped=skipped) == 1
        assert by_id["W2-1"].team_a_id == 99
        assert by_id["C1-1"].team_b_id == 8
        assert skipped == [("W2-1", "team_a_id", 1)]


# ============================================================================
# retract
# ============================================================================


class TestRetract:
    def test_retract_clears_downstream_slots(self):
        _, by_id = built(8)
        finish(by_id["W1-1"], 1, 8)
        advance(by_id["W1-1"], by_id)

        check_retractable(by_id["W1-1"], by_id)
        touched = retract(by_id["W1-1"], by_id)
        assert {m.id for m in touched} == {"W2-1", "C1-1"}
        assert by_id["W2-1"].team_a_id is None
        assert by_id["C1-1"].team_b_id is None

    def test_retract_leaves_other_teams_alone(self):
        _, by_id = built(8)
        by_id["W2-1"].team_a_id = 42
        finish(by_id["W1-1"], 1, 8)
        retract(by_id["W1-1"], by_id)
        assert by_id["W2-1"].team_a_id == 42

    def test_refused_when_downstream_in_progress(self):
        _, by_id = built(8)
        finish(by_id["W1-1"], 1, 8)
        advance(by_id["W1-1"], by_id)
        finish(by_id["W1-2"], 4, 5)
        advance(by_id["W1-2"], by_id)
        by_id["W2-1"].status = STATUS_IN_PROGRESS

        with pytest.raises(InvalidStateError):
            check_retractable(by_id["W1-1"], by_id)

    def test_downstream_bye_is_rolled_back(self):
        topology, by_id = built(3)
        resolve_byes(topology.nodes)
        finish(by_id["W1-2"], 2, 3)
        advance(by_id["W1-2"], by_id)
        resolve_byes(topology.nodes)
        assert by_id["C1-1"].status == STATUS_COMPLETE

        check_retractable(by_id["W1-2"], by_id)
        retract(by_id["W1-2"], by_id)
        assert by_id["C1-1"].status == STATUS_PENDING
        assert by_id["C1-1"].winner_id is None
        assert by_id["C1-1"].team_a_id is None
        assert by_id["W2-1"].team_b_id is None
        assert by_id["W2-1"].team_a_id == 1


# ============================================================================
# resolve_all_dependencies (session)
# ============================================================================


class TestResolveAllDependencies:
    def test_repairs_cleared_slots_and_is_idempotent(self, session: Session, tournament):
        make_teams(session, tournament, 5)
        ensure_bracket_generated(session, tournament.id)

        w2 = session.exec(
            select(Match).where(
                Match.tournament_id == tournament.id,
                Match.round_number == 2,
                Match.position_in_round == 2,
                Match.bracket_type == "winners",
            )
        ).one()
        filled = (w2.team_a_id, w2.team_b_id)
        w2.team_a_id = None
        w2.team_b_id = None
        session.add(w2)
        session.commit()

        summary = resolve_all_dependencies(session, tournament.id)
        assert summary["matches_processed"] == 3
        assert summary["teams_advanced"] == 2
        assert summary["unknown_after"] == summary["unknown_before"] - 1

        session.refresh(w2)
        assert (w2.team_a_id, w2.team_b_id) == filled

        again = resolve_all_dependencies(session, tournament.id)
        assert again["teams_advanced"] == 0
        assert again["unknown_before"] == again["unknown_after"]

    def test_sixteen_teams_repair_leaves_played_consolation_match_alone(self, session: Session, tournament, admin):
        make_teams(session, tournament, 16)
        ensure_bracket_generated(session, tournament.id)
        actor = admin_actor(admin)

        # Winners round 2 losers are written over the consolation round 2 slots last
        play_round(session, tournament.id, BRACKET_WINNERS, 1, actor)
        play_round(session, tournament.id, BRACKET_CONSOLATION, 1, actor)
        play_round(session, tournament.id, BRACKET_WINNERS, 2, actor)

        first, second = round_of(session, tournament.id, BRACKET_CONSOLATION, 2)
        start_match(session, tournament.id, first.id, actor)
        complete_match(session, tournament.id, first.id, 21, 10, actor)
        session.refresh(first)
        session.refresh(second)
        played = (first.status, first.team_a_id, first.team_b_id, first.winner_id, first.loser_id)
        waiting = (second.status, second.team_a_id, second.team_b_id)

        summary = resolve_all_dependencies(session, tournament.id)
        assert summary["teams_advanced"] == 0
        assert summary["slots_skipped"] == 4

        session.refresh(first)
        session.refresh(second)
        assert (first.status, first.team_a_id, first.team_b_id, first.winner_id, first.loser_id) == played
        assert {first.winner_id, first.loser_id} == {first.team_a_id, first.team_b_id}
        assert (second.status, second.team_a_id, second.team_b_id) == waiting
