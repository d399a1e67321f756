import os

# Keep app startup off the on-disk database; must be set before matchplay is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RECONCILE_POLLER_ENABLED", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from matchplay.database import get_session  # noqa: E402
from matchplay.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models MUST be imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables dropped after every test so row ids restart per test
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
    """Provide a test database session on a fresh schema"""
    from matchplay.models.entrant import Entrant  # noqa: F401
    from matchplay.models.match import Match  # noqa: F401
    from matchplay.models.player import Player  # noqa: F401
    from matchplay.models.registration import Registration  # noqa: F401
    from matchplay.models.tournament import Tournament  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place
    for the entire duration so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_tournament(session: Session):
    """
    Factory: tournament plus one registered entrant per ranking.

    rankings holds floats for individual tournaments and (a, b) tuples for
    pair tournaments. Returns (tournament_id, entrant_ids in the given order).
    """
    from matchplay.models.entrant import Entrant
    from matchplay.models.player import Player
    from matchplay.models.registration import Registration
    from matchplay.models.tournament import Tournament

    def _make(capacity, rankings, entrant_kind="individual", bracket_mode="full", name="Club Championship"):
        tournament = Tournament(
            name=name,
            entrant_kind=entrant_kind,
            capacity=capacity,
            bracket_mode=bracket_mode,
        )
        session.add(tournament)
        session.commit()
        session.refresh(tournament)

        entrant_ids = []
        for i, ranking in enumerate(rankings, start=1):
            if entrant_kind == "pair":
                a = Player(name=f"Player {i}a", ranking=ranking[0])
                b = Player(name=f"Player {i}b", ranking=ranking[1])
                session.add(a)
                session.add(b)
                session.commit()
                entrant = Entrant(name=f"Pair {i}", kind="pair", player_a_id=a.id, player_b_id=b.id)
            else:
                player = Player(name=f"Player {i}", ranking=ranking)
                session.add(player)
                session.commit()
                entrant = Entrant(name=player.name, kind="individual", player_a_id=player.id)
            session.add(entrant)
            session.commit()
            session.add(Registration(tournament_id=tournament.id, entrant_id=entrant.id))
            session.commit()
            entrant_ids.append(entrant.id)

        return tournament.id, entrant_ids

    return _make
