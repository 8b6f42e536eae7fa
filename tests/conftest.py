"""
Test fixtures for the Point Transfer API test suite.

This module provides shared fixtures used across all test files:

  - db_engine: Fresh SQLite database file for each test, built with the
    same engine hooks as production (BEGIN IMMEDIATE transactions)
  - session_factory / db_session: Async sessions bound to that engine
  - make_user: Creates a user with an opening balance through the user service
  - client: Async HTTP test client with get_db pointed at the test database

Key design decisions:
  - A file database under tmp_path (not :memory:) so that independent
    sessions really are independent connections; the concurrency tests
    depend on that.
  - Service-level tests run the engine and read results on one session
    (db_session). A second session would wait on the SQLite write lock that
    db_session's open transaction holds.
  - HTTP tests go through the client only; every request gets its own
    session, committed or rolled back exactly like get_db does.
"""

import itertools
from decimal import Decimal

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import points_api.models  # noqa: F401
from points_api.database import Base, build_engine, get_db
from points_api.exceptions import PointsAPIError
from points_api.main import app
from points_api.services import user_service


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a fresh async engine with all tables for each test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'points_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(db_session):
    """
    Factory fixture: `await make_user("10.00")` creates a user with that
    opening balance, commits, and returns the new user's id.
    """
    counter = itertools.count(1)

    async def _make_user(points="10.00", first_name="Ann", last_name="Lee"):
        n = next(counter)
        user = await user_service.create_user(
            db_session,
            first_name=first_name,
            last_name=last_name,
            phone=f"08100000{n:02d}",
            email=f"user{n}@example.com",
            points=Decimal(points),
        )
        await db_session.commit()
        return user.id

    return _make_user


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    The override mirrors get_db: commit on success and on domain errors,
    roll back on anything else.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except PointsAPIError:
                await session.commit()
                raise
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def api_user(client):
    """
    Factory fixture for HTTP tests: `await api_user("10.00")` creates a user
    through POST /users and returns its id.
    """
    counter = itertools.count(1)

    async def _api_user(points="10.00"):
        n = next(counter)
        response = await client.post(
            "/users",
            json={
                "first_name": "Bo",
                "last_name": "Kim",
                "phone": f"08200000{n:02d}",
                "email": f"api{n}@example.com",
                "points": points,
            },
        )
        assert response.status_code == 201, f"User creation failed: {response.text}"
        return response.json()["id"]

    return _api_user
