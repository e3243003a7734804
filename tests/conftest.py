"""
Shared test fixtures for Alumni Connect API tests.

Provides database session management, test clients, and user fixtures.
"""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.jwt import create_access_token
from app.config import settings
from app.database import Base, get_db, get_live_db
from app.main import app
from app.middleware.rate_limit import reset_limiter

# Import models so they're registered with Base.metadata before table creation
from app.models import Message, Notification, Posting, User  # noqa: F401

TEST_DATABASE_URL = settings.test_database_url

# One shared connection so every session sees the same in-memory database
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
    echo=False,
)

TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# --- Rate Limiter Reset Fixture ---


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Reset rate limiter before each test to ensure test isolation."""
    reset_limiter()
    yield


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create tables before each test function, drop after.
    Provides isolated database state per test.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client configured for testing.

    Each request gets its own session on the test engine, for both the
    primary and the live-update store, committed at teardown like ``get_db``.
    """

    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_live_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True,
    ) as client:
        yield client

    app.dependency_overrides.clear()


# --- Authentication Helper Fixtures ---


@pytest.fixture
def auth_headers():
    """Factory fixture for creating bearer token headers."""

    def _auth_headers(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


# --- User Fixtures ---


async def _create_user(
    db_session: AsyncSession,
    user_id: str,
    role: str,
    display_name: str,
) -> dict[str, Any]:
    """Helper to create a directory user and an access token for them."""
    user = User(
        id=user_id,
        email=f"{user_id}@example.com",
        display_name=display_name,
        role=role,
    )
    db_session.add(user)
    await db_session.commit()

    return {
        "user_id": user_id,
        "role": role,
        "display_name": display_name,
        "email": user.email,
        "token": create_access_token(user_id, role),
    }


@pytest_asyncio.fixture
async def test_student(db_session: AsyncSession) -> dict[str, Any]:
    """A student user with a valid access token."""
    return await _create_user(db_session, "student-1", "student", "Sam Student")


@pytest_asyncio.fixture
async def second_student(db_session: AsyncSession) -> dict[str, Any]:
    """A second student for ownership scenarios."""
    return await _create_user(db_session, "student-2", "student", "Robin Student")


@pytest_asyncio.fixture
async def test_teacher(db_session: AsyncSession) -> dict[str, Any]:
    """A teacher user with a valid access token."""
    return await _create_user(db_session, "teacher-1", "teacher", "Taylor Teacher")


@pytest_asyncio.fixture
async def test_alumni(db_session: AsyncSession) -> dict[str, Any]:
    """An alumni user with a valid access token."""
    return await _create_user(db_session, "alumni-1", "alumni", "Alex Alumni")


# --- Utility Fixtures ---


@pytest.fixture
def frozen_time():
    """
    Fixture for time-based testing using freezegun.

    Usage:
        with frozen_time("2026-02-01 12:00:00"):
            # time is frozen
    """
    from freezegun import freeze_time

    return freeze_time
