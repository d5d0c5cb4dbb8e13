import os

# Keep the application engine off disk while tests import ladder.database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from typing import List, Sequence, Tuple  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from ladder.database import get_session  # noqa: E402
from ladder.main import app  # noqa: E402
from ladder.models import Attendance, Player, PlaySession  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Tables are dropped after every test: the single-ACTIVE-tournament rule
#    is global, so state must not leak between tests
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
    """Provide a test database session on fresh tables"""
    import ladder.models  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session"""
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


EMOJIS = ["🏐", "🔥", "⚡", "🌵", "🦊", "🐙", "🍩", "🎯", "🚀", "🧊", "🌶", "🐝", "🎲", "🪁", "🦖", "🍀"]


@pytest.fixture
def make_play_session(session: Session):
    """Factory: a play session with one present player per rating, in attendance order."""

    def _make(
        ratings: Sequence[int],
        name: str = "Tuesday Spike",
        absent: Sequence[int] = (),
    ) -> Tuple[PlaySession, List[Player]]:
        play = PlaySession(name=name)
        session.add(play)
        session.commit()
        session.refresh(play)

        players = []
        for i, rating in enumerate(ratings):
            player = Player(name=f"{name[:3]}{i + 1}", emoji=EMOJIS[i % len(EMOJIS)], rating=rating)
            session.add(player)
            players.append(player)
        session.commit()

        for i, player in enumerate(players):
            session.refresh(player)
            session.add(Attendance(session_id=play.id, player_id=player.id, present=i not in absent))
        session.commit()
        return play, players

    return _make
