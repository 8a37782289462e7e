"""Fixtures for router tests: the full app on an in-memory database."""

import pytest
import respx
from fastapi.testclient import TestClient

from gridbalance.config import Settings
from gridbalance.main import create_app
from gridbalance.services.balance_normalizer import normalize
from gridbalance.services.repositories import BalanceRepository

REE_TEST_URL = "https://apidatos.ree.test"


@pytest.fixture
def app():
    """Application with the scheduler disabled and no retry delays."""
    return create_app(
        Settings(
            database_url="sqlite+aiosqlite:///:memory:",
            scheduler_enabled=False,
            ree_api_base_url=REE_TEST_URL,
            fetch_retry_delay=0,
        )
    )


@pytest.fixture
def ree_api():
    """Mocked REE API. Request it before ``client`` so it outlives app shutdown."""
    with respx.mock(base_url=REE_TEST_URL, assert_all_called=False) as router:
        yield router


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def seed(app, client):
    """Store a payload for a day through the app's own session factory."""

    def seed(payload, balance_date):
        async def store():
            normalized = normalize(payload)
            async with app.state.session_factory() as db:
                repo = BalanceRepository(db, app.state.grid_timezone)
                return await repo.persist(balance_date, normalized.balance, normalized.categories)

        return client.portal.call(store)

    return seed
