"""Balance ingestion pipeline: fetch -> normalize -> persist."""

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gridbalance.constants import HISTORICAL_END_OFFSET_DAYS, HISTORICAL_START_OFFSET_DAYS
from gridbalance.services.balance_normalizer import normalize
from gridbalance.services.ree_client import ReeApiClient
from gridbalance.services.repositories import BalanceRepository, SummaryCounts

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """What one ingestion run stored."""

    balance_date: date
    balance_id: int
    categories: int
    sources: int
    values: int


class IngestionService:
    """Runs the ingestion pipeline for a calendar day.

    The REE client and the session factory are shared by every run; each run
    opens its own session, so runs for different jobs can overlap safely.
    """

    def __init__(
        self,
        client: ReeApiClient,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._client = client
        self._session_factory = session_factory

    def today(self) -> date:
        return self._client.today()

    async def ingest_date(self, day: date) -> IngestionResult:
        """Fetch, normalize and store the balance of ``day``.

        Raises:
            RemoteFetchError: If the REE API kept failing
            InvalidPayloadError: If the payload has no usable balance
            StorageError: If the database write failed
        """
        payload = await self._client.fetch_date(day)
        normalized = normalize(payload)

        async with self._session_factory() as db:
            repo = BalanceRepository(db, self._client.tz)
            balance_id = await repo.persist(day, normalized.balance, normalized.categories)

        return IngestionResult(
            balance_date=day,
            balance_id=balance_id,
            categories=len(normalized.categories),
            sources=normalized.source_count,
            values=normalized.value_count,
        )

    async def ingest_current(self) -> IngestionResult:
        """Ingest today's balance."""
        return await self.ingest_date(self.today())

    async def ingest_previous(self) -> IngestionResult:
        """Ingest yesterday's balance, which REE keeps revising for a while."""
        return await self.ingest_date(self.today() - timedelta(days=1))

    async def ingest_historical(
        self,
        start_offset: int = HISTORICAL_START_OFFSET_DAYS,
        end_offset: int = HISTORICAL_END_OFFSET_DAYS,
    ) -> list[date]:
        """Re-ingest each day from ``start_offset`` to ``end_offset`` days ago.

        A failing day is logged and skipped; the remaining days still run.

        Returns:
            Days that were stored successfully
        """
        today = self.today()
        stored: list[date] = []

        for offset in range(start_offset, end_offset + 1):
            day = today - timedelta(days=offset)
            try:
                await self.ingest_date(day)
            except Exception as e:
                logger.error("Failed to fetch historical data for %s: %s", day.isoformat(), e)
                continue
            stored.append(day)
            logger.info("Historical data for %s stored successfully", day.isoformat())

        logger.info(
            "Historical data fetch completed: %d/%d days stored",
            len(stored),
            end_offset - start_offset + 1,
        )
        return stored

    async def purge(self, retention_days: int) -> int:
        """Delete balances older than the retention window."""
        async with self._session_factory() as db:
            return await BalanceRepository(db).purge_older_than(retention_days)

    async def summary(self) -> SummaryCounts:
        """Row counts for every stored entity."""
        async with self._session_factory() as db:
            return await BalanceRepository(db).summary_counts()
