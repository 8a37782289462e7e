"""Shared test fixtures: in-memory SQLite database and sample payloads."""

import copy

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gridbalance.database import build_engine, build_session_factory, create_tables
from tests.factories import SAMPLE_PAYLOAD

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Fresh in-memory database per test, with every table created."""
    engine = build_engine(TEST_DATABASE_URL)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    """Database session for direct assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def sample_payload() -> dict:
    """Independent copy of ``SAMPLE_PAYLOAD`` that a test may modify."""
    return copy.deepcopy(SAMPLE_PAYLOAD)
