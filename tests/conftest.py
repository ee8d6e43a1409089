"""Shared pytest fixtures: sqlite and PostgreSQL record stores for the itinerary tests."""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from backend.tripdesk.db.models import Base


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """URL of a fresh sqlite file for one test.

    File-backed, so every pooled connection sees the same tables; an
    in-memory database would be empty again on the next connection.
    """
    return f"sqlite+aiosqlite:///{tmp_path / 'tripdesk.db'}"


@pytest_asyncio.fixture
async def sqlite_session(sqlite_url: str) -> AsyncGenerator[AsyncSession, None]:
    """Session on a sqlite file holding the full trip/item schema."""
    engine = create_async_engine(sqlite_url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Engine on the PostgreSQL database named by DATABASE_URL.

    Skips unless DATABASE_URL points at PostgreSQL; tests using it are
    marked with @pytest.mark.postgres. The schema is created for the test
    and dropped again afterwards.
    """
    database_url = os.getenv("DATABASE_URL", "")
    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip("DATABASE_URL is not PostgreSQL - skipping postgres test")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def postgres_session(postgres_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session for JSONB item-details tests; uncommitted work is rolled back."""
    async with AsyncSession(postgres_engine, expire_on_commit=False) as session:
        yield session
        await session.rollback()
