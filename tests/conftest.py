"""Shared test fixtures — async DB, leave stores, app and client.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Point pydantic-settings at SQLite before any megafast import reads it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LEAVE_STORE_BACKEND", "sql")

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from megafast.database import Base, get_db
from megafast.dependencies import get_leave_store
from megafast.leave.memory_store import InMemoryLeaveStore
from megafast.leave.store import SqlAlchemyLeaveStore
from megafast.main import create_app

# Import model modules so metadata knows every table
import megafast.leave.models  # noqa: F401


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from megafast.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Leave stores ────────────────────────────────────────────────────

@pytest.fixture
def sql_store() -> SqlAlchemyLeaveStore:
    return SqlAlchemyLeaveStore(TestSessionFactory, max_attempts=3)


@pytest.fixture
def memory_store() -> InMemoryLeaveStore:
    return InMemoryLeaveStore(max_attempts=3)


@pytest.fixture(params=["memory", "sql"])
def store(request, memory_store, sql_store):
    """Run a test once against each store backend."""
    return memory_store if request.param == "memory" else sql_store


@pytest.fixture
async def file_sql_store(tmp_path) -> AsyncGenerator[SqlAlchemyLeaveStore, None]:
    """SQL store on a file database, one connection per transaction.

    The shared in-memory engine serialises everything on one connection;
    this one lets two transactions overlap for real.
    """
    file_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'leave.db'}", echo=False,
    )
    async with file_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield SqlAlchemyLeaveStore(
        async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False),
        max_attempts=3,
    )
    await file_engine.dispose()


@pytest.fixture(params=["memory", "sql_file"])
def concurrent_store(request, memory_store, file_sql_store):
    """Run a concurrency test against each backend that can overlap."""
    return memory_store if request.param == "memory" else file_sql_store


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app(sql_store):
    """Create a fresh app instance with DB and store dependencies overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_leave_store] = lambda: sql_store
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()

