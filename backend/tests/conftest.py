from datetime import datetime, timedelta
from typing import List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from cornhole_bracket.database import get_session
from cornhole_bracket.main import app
from cornhole_bracket.models.match import Match  # noqa: F401
from cornhole_bracket.models.player import Player
from cornhole_bracket.models.team import Team
from cornhole_bracket.models.tournament import BRACKET_STATUS_PUBLISHED, Tournament
from cornhole_bracket.services.match_state import Actor

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Tables created and dropped per test, not relying on app startup
# 4. App dependency overridden to use test_engine (see client_fixture)
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Fresh schema per test."""
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Test client whose get_session yields sessions on the test engine.

    Override MUST be set BEFORE TestClient() and stay in place for the
    entire duration so the app never touches its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Roster helpers
# ============================================================================


def make_tournament(session: Session, name: str = "Spring Toss", published: bool = True) -> Tournament:
    tournament = Tournament(name=name)
    if published:
        tournament.bracket_status = BRACKET_STATUS_PUBLISHED
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


def make_admin(session: Session, name: str = "Director") -> Player:
    admin = Player(display_name=name, is_admin=True)
    session.add(admin)
    session.commit()
    session.refresh(admin)
    return admin


def make_teams(session: Session, tournament: Tournament, count: int, seeded: bool = True) -> List[Team]:
    """count full teams (two players each) registered a minute apart, seeds 1..count."""
    base = datetime(2026, 5, 1, 9, 0)
    teams = []
    for i in range(1, count + 1):
        p1 = Player(display_name=f"Player {i}a")
        p2 = Player(display_name=f"Player {i}b")
        session.add(p1)
        session.add(p2)
        session.flush()
        team = Team(
            tournament_id=tournament.id,
            name=f"Team {i}",
            seed_number=i if seeded else None,
            player1_id=p1.id,
            player2_id=p2.id,
            created_at=base + timedelta(minutes=i),
        )
        session.add(team)
        teams.append(team)
    session.commit()
    for team in teams:
        session.refresh(team)
    return teams


def admin_actor(admin: Player) -> Actor:
    return Actor(player_id=admin.id, is_admin=True)


def member_actor(team: Team) -> Actor:
    return Actor(player_id=team.player1_id, is_admin=False, team_id=team.id)


@pytest.fixture
def tournament(session: Session) -> Tournament:
    return make_tournament(session)


@pytest.fixture
def admin(session: Session) -> Player:
    return make_admin(session)
