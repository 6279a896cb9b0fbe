"""
Pytest configuration and fixtures for testing
"""
import os

# Must be set before the app modules read settings
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-pytest-only")

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from auth_utils import create_jwt, hash_password
from config.settings import PLAN_TRIAL, STATUS_TRIAL, TRIAL_USAGE_LIMIT
from crud.plan import PlanRepository
from database import Base, get_db
from database_models import User
from utils.shared_utils import utcnow

# In-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def session_factory():
    """
    Fresh in-memory database per test.

    StaticPool keeps a single connection so every session created during the
    test (fixtures and app requests alike) sees the same database.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        # Import models to ensure they're registered with Base
        import database_models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with factory() as session:
        await PlanRepository(session).seed_default_plans()
        await session.commit()

    yield factory

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_db(session_factory):
    """
    Isolated AsyncSession for one test.
    Tests commit explicitly; anything left pending is rolled back.
    """
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest.fixture
async def async_client(session_factory):
    """HTTP client bound to the app, with get_db pointed at the test database."""
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


async def create_user(session: AsyncSession, email: str = "rider@example.com", password: str = "password123", **overrides) -> User:
    """Insert a committed, email-verified trial user. Keyword overrides replace any column value."""
    now = utcnow()
    data = {
        "name": email.split("@")[0].title(),
        "email": email,
        "hashed_password": hash_password(password),
        "subscription_status": STATUS_TRIAL,
        "subscription_plan": PLAN_TRIAL,
        "trial_start_date": now,
        "trial_end_date": now + timedelta(days=14),
        "usage_count": 0,
        "usage_limit": TRIAL_USAGE_LIMIT,
        "email_verified": True,
    }
    data.update(overrides)
    user = User(**data)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_jwt(user.id, user.email)}"}


async def reload_user(session: AsyncSession, user_id: int) -> User:
    """Fetch the current database state of a user, bypassing the identity map."""
    session.expire_all()
    return await session.get(User, user_id)
