"""Shared pytest fixtures for snapbet-jobs tests."""
import os
import sys
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import AsyncGenerator, Generator

# Must be set before snapbet_jobs is imported: the engine is built at import time
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOG_JSON"] = "false"

import pytest
import pytest_asyncio
from sqlalchemy.orm import Session
from httpx import AsyncClient, ASGITransport

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from snapbet_jobs.core.database import build_session_factory, engine as test_engine
from snapbet_jobs.models import Bankroll, Base, Bet, Game, Post, User
from snapbet_jobs.utils.timezone import utcnow


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite engine (StaticPool) with fresh tables per test."""
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def session_factory(engine):
    """Session factory handed to jobs; every session sees the same database."""
    return build_session_factory(engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Session for arranging data and asserting on results."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def now() -> datetime:
    return utcnow().replace(microsecond=0)


# ─────────────────────────────────────────────────────────────
# Factories
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def create_user(db_session: Session):
    """Create a user with a bankroll (balance in cents)."""
    def _create(username=None, balance=100000, referral_count=0, created_at=None,
                avatar_url=None, with_bankroll=True, **kwargs) -> User:
        user = User(
            id=kwargs.pop("id", str(uuid.uuid4())),
            username=username or f"user_{uuid.uuid4().hex[:8]}",
            referral_count=referral_count,
            avatar_url=avatar_url,
            created_at=created_at or utcnow() - timedelta(days=60),
            **kwargs
        )
        db_session.add(user)
        if with_bankroll:
            db_session.add(Bankroll(user_id=user.id, balance=balance))
        db_session.commit()
        return user
    return _create


@pytest.fixture
def create_game(db_session: Session):
    def _create(home_team="Los Angeles Lakers", away_team="Boston Celtics", status="scheduled",
                home_score=None, away_score=None, commence_time=None, sport="basketball_nba",
                **kwargs) -> Game:
        game = Game(
            id=kwargs.pop("id", str(uuid.uuid4())),
            sport=sport,
            home_team=home_team,
            away_team=away_team,
            status=status,
            home_score=home_score,
            away_score=away_score,
            commence_time=commence_time or utcnow() - timedelta(hours=4),
            **kwargs
        )
        db_session.add(game)
        db_session.commit()
        return game
    return _create


@pytest.fixture
def create_bet(db_session: Session):
    def _create(user, game, bet_type="spread", bet_details=None, stake=1000, odds=-110,
                status="pending", actual_win=None, created_at=None, **kwargs) -> Bet:
        if bet_details is None:
            bet_details = {"team": game.home_team, "line": -3.5}
        bet = Bet(
            id=kwargs.pop("id", str(uuid.uuid4())),
            user_id=user.id,
            game_id=game.id,
            bet_type=bet_type,
            bet_details=bet_details,
            stake=stake,
            odds=odds,
            status=status,
            actual_win=actual_win,
            created_at=created_at or utcnow() - timedelta(hours=5),
            **kwargs
        )
        db_session.add(bet)
        db_session.commit()
        return bet
    return _create


@pytest.fixture
def create_post(db_session: Session):
    def _create(user, post_type="content", created_at=None, expires_at=None, bet=None,
                deleted_at=None, **kwargs) -> Post:
        post = Post(
            id=kwargs.pop("id", str(uuid.uuid4())),
            user_id=user.id,
            post_type=post_type,
            bet_id=bet.id if bet is not None else None,
            created_at=created_at or utcnow(),
            expires_at=expires_at,
            deleted_at=deleted_at,
            **kwargs
        )
        db_session.add(post)
        db_session.commit()
        return post
    return _create


# ─────────────────────────────────────────────────────────────
# API
# ─────────────────────────────────────────────────────────────

@pytest_asyncio.fixture(scope="function")
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the ops app, wired to the test database."""
    from snapbet_jobs.main import app
    from snapbet_jobs.core.scheduler import JobScheduler
    from snapbet_jobs.jobs import build_jobs

    # ASGITransport does not run the lifespan; wire app state directly
    app.state.session_factory = session_factory
    app.state.job_scheduler = JobScheduler(build_jobs(session_factory))

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client
