import os

# Keep the application engine off the developer's database file
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import gamehub.models # noqa: F401
from gamehub.core.database import Base
from gamehub.models.tournament_model import GameType, Participant, TournamentModel
from gamehub.services.user_service import UserService


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def user_service(db_session):
    return UserService(db_session)


@pytest.fixture
def make_user(user_service):
    """Create verified users named player1, player2, ... on demand."""
    counter = {"n": 0}

    def _make(username=None, **kwargs):
        counter["n"] += 1
        username = username or f"player{counter['n']}"
        kwargs.setdefault("is_email_verified", True)
        return user_service.create_user(username=username, email=f"{username}@example.com", **kwargs)

    return _make


def seeded_tournament(count: int, **overrides) -> TournamentModel:
    """A tournament snapshot with participants u1..u{count} seeded in order."""
    fields = {
        "name": "Spring Cup",
        "game_type": GameType.TICTACTOE,
        "max_participants": max(count, 2),
        "start_date": datetime(2026, 5, 1, 18, 0),
    }
    fields.update(overrides)
    tournament = TournamentModel(**fields)
    tournament.participants = [
        Participant(user_id=f"u{i}", username=f"player{i}", seed=i) for i in range(1, count + 1)
    ]
    return tournament


@pytest.fixture
def tournament_factory():
    return seeded_tournament
