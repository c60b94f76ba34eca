from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from libs.auth.models import Principal, Role
from libs.common.config import get_settings
from libs.db.base import Base

# Import all models so metadata includes every table
from libs.billing import models as _billing_models  # noqa: F401
from services.goals_service import models as _goal_models  # noqa: F401
from services.sessions_service import models as _session_models  # noqa: F401

from tests.factories import CoachAssignmentFactory, GymFactory, make_principal

settings = get_settings()


@pytest_asyncio.fixture
async def test_engine():
    """
    Fresh in-memory database per test.

    StaticPool keeps the single SQLite connection alive for the engine's
    lifetime so every session sees the same tables.
    """
    engine = create_async_engine(
        settings.DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient against the gateway app with the DB dependency
    pointed at the test session. Auth goes through real JWT decoding.
    """
    from libs.db.session import get_async_db
    from services.gateway_service.app.main import app

    app.dependency_overrides[get_async_db] = lambda: db_session

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def gym(db_session):
    """A pro-tier gym with an active subscription."""
    gym = GymFactory.create()
    db_session.add(gym)
    await db_session.commit()
    return gym


@pytest_asyncio.fixture
async def coach_and_member(db_session, gym):
    """A coach and a member assigned to each other, in ``gym``."""
    coach = make_principal(Role.COACH, gym.id)
    member = make_principal(Role.MEMBER, gym.id)
    db_session.add(
        CoachAssignmentFactory.create(
            gym_id=gym.id, coach_id=coach.id, member_id=member.id
        )
    )
    await db_session.commit()
    return coach, member


@pytest.fixture
def admin(gym) -> Principal:
    return make_principal(Role.ADMIN, gym.id)
