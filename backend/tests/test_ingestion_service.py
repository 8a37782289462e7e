"""Tests for the balance ingestion pipeline."""

from datetime import UTC, date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from gridbalance.models import EnergySource, EnergyValue, PowerGridBalance
from gridbalance.services import IngestionService, InvalidPayloadError, RemoteFetchError
from tests.factories import make_payload

TODAY = date(2024, 1, 10)


@pytest.fixture
def client(sample_payload):
    """REE client stub answering every day with the sample payload."""
    client = MagicMock()
    client.tz = UTC
    client.today.return_value = TODAY
    client.fetch_date = AsyncMock(return_value=sample_payload)
    return client


@pytest.fixture
def service(client, session_factory):
    return IngestionService(client, session_factory)


class TestIngestDate:
    """Tests for single-day ingestion."""

    async def test_end_to_end(self, service, client, db):
        """The sample payload lands as one row per table."""
        result = await service.ingest_date(date(2024, 1, 1))

        client.fetch_date.assert_awaited_once_with(date(2024, 1, 1))
        assert (result.categories, result.sources, result.values) == (1, 1, 1)
        assert result.balance_date == date(2024, 1, 1)

        summary = await service.summary()
        assert (summary.balances, summary.categories, summary.sources, summary.values) == (1, 1, 1, 1)
        total = (await db.execute(select(EnergySource.total))).scalar_one()
        value = (await db.execute(select(EnergyValue.value))).scalar_one()
        assert total == 100
        assert value == 10

    async def test_twice_is_idempotent(self, service):
        """Re-ingesting a day leaves counts unchanged."""
        first = await service.ingest_date(date(2024, 1, 1))
        second = await service.ingest_date(date(2024, 1, 1))

        assert first.balance_id == second.balance_id
        summary = await service.summary()
        assert (summary.balances, summary.categories, summary.sources, summary.values) == (1, 1, 1, 1)

    async def test_invalid_payload_stores_nothing(self, service, client):
        """A payload without balance id raises before touching the database."""
        payload = make_payload()
        del payload["data"]["id"]
        client.fetch_date.return_value = payload

        with pytest.raises(InvalidPayloadError):
            await service.ingest_date(date(2024, 1, 1))

        assert (await service.summary()).balances == 0

    async def test_fetch_failure_propagates(self, service, client):
        """Fetch errors reach the caller."""
        client.fetch_date.side_effect = RemoteFetchError("Failed to fetch data after 3 attempts", 3)

        with pytest.raises(RemoteFetchError):
            await service.ingest_date(date(2024, 1, 1))

    async def test_current_and_previous(self, service, client):
        """Current is today and previous is yesterday, in grid time."""
        current = await service.ingest_current()
        previous = await service.ingest_previous()

        assert current.balance_date == TODAY
        assert previous.balance_date == TODAY - timedelta(days=1)
        assert [call.args[0] for call in client.fetch_date.await_args_list] == [
            TODAY,
            TODAY - timedelta(days=1),
        ]


class TestIngestHistorical:
    """Tests for the historical backfill."""

    async def test_fetches_days_two_to_eight_ago(self, service, client):
        """Each of the seven days is fetched, oldest offset last."""
        stored = await service.ingest_historical()

        expected = [TODAY - timedelta(days=offset) for offset in range(2, 9)]
        assert stored == expected
        assert [call.args[0] for call in client.fetch_date.await_args_list] == expected

    async def test_failing_day_is_skipped(self, service, client, sample_payload, db):
        """One failing day does not stop the others."""
        failing_day = TODAY - timedelta(days=4)

        async def fetch(day):
            if day == failing_day:
                raise RemoteFetchError("Failed to fetch data after 3 attempts", 3)
            return sample_payload

        client.fetch_date.side_effect = fetch

        stored = await service.ingest_historical()

        assert len(stored) == 6
        assert failing_day not in stored
        balance_count = (
            await db.execute(select(func.count()).select_from(PowerGridBalance))
        ).scalar_one()
        assert balance_count == 6


class TestPurge:
    """Tests for retention cleanup through the service."""

    async def test_purge_fresh_data(self, service):
        """Freshly ingested data survives the default retention."""
        await service.ingest_date(date(2024, 1, 1))

        assert await service.purge(365) == 0
        assert (await service.summary()).balances == 1
