"""Power grid balance data access layer."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from sqlalchemy import and_, delete, desc, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from gridbalance.constants import LATEST_VALUES_PER_SOURCE
from gridbalance.models import EnergyCategory, EnergySource, EnergyValue, PowerGridBalance
from gridbalance.services.balance_normalizer import (
    BalanceRecord,
    CategoryRecord,
    SourceRecord,
    ValueRecord,
)

from .exceptions import StorageError

logger = logging.getLogger(__name__)

# Rows per multi-row INSERT when upserting a source's values
VALUE_CHUNK_SIZE = 500


@dataclass
class SummaryCounts:
    """Row counts per table plus the newest balance update."""

    balances: int
    categories: int
    sources: int
    values: int
    most_recent_update: datetime | None


class BalanceRepository:
    """Centralized balance data access.

    Writes are idempotent upserts keyed by the upstream identifiers, so the
    same window can be ingested any number of times (and concurrently) without
    creating duplicates.

    Naming conventions:
    - find_* : Query that may return None or empty list
    - persist / purge_* : Writes, committed by the repository
    """

    def __init__(self, db: AsyncSession, timezone: tzinfo = UTC) -> None:
        self._db = db
        self._tz = timezone

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _insert(self, model):
        """Dialect-specific INSERT supporting ON CONFLICT DO UPDATE."""
        dialect = self._db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model)
        if dialect == "sqlite":
            return sqlite.insert(model)
        raise StorageError(f"Upserts are not supported on the {dialect} dialect")

    async def persist(
        self,
        balance_date: date | datetime,
        balance: BalanceRecord,
        categories: list[CategoryRecord],
    ) -> int:
        """Store a normalized balance and its category tree.

        The balance, each category and each source (with its values) are
        committed separately. A failure part-way leaves the earlier rows in
        place; re-running the ingestion converges to the full state.

        Args:
            balance_date: Day the balance belongs to (time of day is dropped)
            balance: Balance attributes
            categories: Categories with their sources and values

        Returns:
            Internal id of the upserted balance

        Raises:
            StorageError: On any database failure
        """
        if isinstance(balance_date, datetime):
            balance_date = balance_date.date()

        try:
            balance_pk = await self._upsert_balance(balance_date, balance)
            await self._db.commit()

            # One category at a time: its sources and values land before the next starts
            for category in categories:
                await self._upsert_category_tree(category, balance_pk)
        except (SQLAlchemyError, OSError) as e:
            await self._db.rollback()
            logger.error(f"Error storing balance {balance.ree_id} for {balance_date}: {e}")
            raise StorageError("Failed to store REE data in database", cause=e) from e

        logger.info(
            "Stored balance %s for %s with %d categories", balance.ree_id, balance_date, len(categories)
        )
        return balance_pk

    async def _upsert_balance(self, balance_date: date, balance: BalanceRecord) -> int:
        stmt = self._insert(PowerGridBalance).values(
            ree_id=balance.ree_id,
            balance_date=balance_date,
            type=balance.type,
            title=balance.title,
            description=balance.description,
            last_update=balance.last_update,
            cache_hit=balance.cache_hit,
            cache_expire_at=balance.cache_expire_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["ree_id", "balance_date"],
            set_={
                "type": stmt.excluded["type"],
                "title": stmt.excluded["title"],
                "description": stmt.excluded["description"],
                "last_update": stmt.excluded["last_update"],
                "cache_hit": stmt.excluded["cache_hit"],
                "cache_expire_at": stmt.excluded["cache_expire_at"],
                "updated_at": func.now(),
            },
        ).returning(PowerGridBalance.id)

        result = await self._db.execute(stmt)
        return result.scalar_one()

    async def _upsert_category_tree(self, category: CategoryRecord, balance_pk: int) -> None:
        stmt = self._insert(EnergyCategory).values(
            ree_id=category.ree_id,
            type=category.type,
            title=category.title,
            description=category.description,
            last_update=category.last_update,
            balance_id=balance_pk,
        )
        # Categories are unique system-wide: re-link to the balance being stored
        stmt = stmt.on_conflict_do_update(
            index_elements=["ree_id"],
            set_={
                "type": stmt.excluded["type"],
                "title": stmt.excluded["title"],
                "description": stmt.excluded["description"],
                "last_update": stmt.excluded["last_update"],
                "balance_id": stmt.excluded["balance_id"],
                "updated_at": func.now(),
            },
        ).returning(EnergyCategory.id)

        category_pk = (await self._db.execute(stmt)).scalar_one()
        await self._db.commit()

        for source in category.sources:
            if source.group_id != category.ree_id:
                logger.warning(
                    "Skipping source %s: group %s does not match category %s",
                    source.ree_id,
                    source.group_id,
                    category.ree_id,
                )
                continue

            source_pk = await self._upsert_source(source, category_pk)
            if source.values:
                await self._upsert_values(source.values, source_pk)
            await self._db.commit()

    async def _upsert_source(self, source: SourceRecord, category_pk: int) -> int:
        stmt = self._insert(EnergySource).values(
            ree_id=source.ree_id,
            group_id=source.group_id,
            type=source.type,
            title=source.title,
            description=source.description,
            color=source.color,
            icon=source.icon,
            magnitude=source.magnitude,
            is_composite=source.is_composite,
            last_update=source.last_update,
            total=source.total,
            total_percentage=source.total_percentage,
            category_id=category_pk,
        )
        updated = (
            "group_id",
            "type",
            "title",
            "description",
            "color",
            "icon",
            "magnitude",
            "is_composite",
            "last_update",
            "total",
            "total_percentage",
            "category_id",
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["ree_id"],
            set_={**{name: stmt.excluded[name] for name in updated}, "updated_at": func.now()},
        ).returning(EnergySource.id)

        return (await self._db.execute(stmt)).scalar_one()

    async def _upsert_values(self, values: list[ValueRecord], source_pk: int) -> None:
        # One row per timestamp; a repeated timestamp in the same payload keeps the last reading
        by_timestamp = {value.timestamp: value for value in values}
        rows = [
            {
                "source_id": source_pk,
                "timestamp": value.timestamp,
                "value": value.value,
                "percentage": value.percentage,
            }
            for value in by_timestamp.values()
        ]

        for offset in range(0, len(rows), VALUE_CHUNK_SIZE):
            stmt = self._insert(EnergyValue).values(rows[offset : offset + VALUE_CHUNK_SIZE])
            stmt = stmt.on_conflict_do_update(
                index_elements=["source_id", "timestamp"],
                set_={
                    "value": stmt.excluded["value"],
                    "percentage": stmt.excluded["percentage"],
                },
            )
            await self._db.execute(stmt)

    async def purge_older_than(self, retention_days: int) -> int:
        """Delete balances created more than ``retention_days`` ago.

        Categories, sources and values go with them through ON DELETE CASCADE.

        Returns:
            Number of balances deleted
        """
        if retention_days < 0:
            raise ValueError("retention_days must not be negative")

        cutoff = datetime.now(UTC) - timedelta(days=retention_days)
        try:
            result = await self._db.execute(
                delete(PowerGridBalance)
                .where(PowerGridBalance.created_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            await self._db.commit()
        except (SQLAlchemyError, OSError) as e:
            await self._db.rollback()
            logger.error(f"Error cleaning up balances older than {cutoff}: {e}")
            raise StorageError("Failed to cleanup old data", cause=e) from e

        deleted = result.rowcount or 0
        logger.info("Cleaned up %d old balance records (created before %s)", deleted, cutoff)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _window(self, start: date, end: date) -> tuple[datetime, datetime]:
        """Grid-local day boundaries of ``[start, end]``, expressed in UTC."""
        return (
            datetime.combine(start, time.min, tzinfo=self._tz).astimezone(UTC),
            datetime.combine(end, time.max, tzinfo=self._tz).astimezone(UTC),
        )

    async def summary_counts(self) -> SummaryCounts:
        """Count rows in every table and find the most recent balance update."""
        try:
            counts = [
                (await self._db.execute(select(func.count()).select_from(model))).scalar_one()
                for model in (PowerGridBalance, EnergyCategory, EnergySource, EnergyValue)
            ]
            most_recent = (
                await self._db.execute(select(func.max(PowerGridBalance.last_update)))
            ).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise StorageError("Failed to fetch summary statistics", cause=e) from e

        return SummaryCounts(
            balances=counts[0],
            categories=counts[1],
            sources=counts[2],
            values=counts[3],
            most_recent_update=most_recent,
        )

    async def find_by_date_range(self, start: date, end: date) -> Sequence[PowerGridBalance]:
        """Find balances for ``[start, end]`` with their full tree.

        Values are restricted to the same window. Newest update first.
        """
        window_start, window_end = self._window(start, end)
        stmt = (
            select(PowerGridBalance)
            .where(PowerGridBalance.balance_date >= start, PowerGridBalance.balance_date <= end)
            .options(
                selectinload(PowerGridBalance.categories)
                .selectinload(EnergyCategory.sources)
                .selectinload(
                    EnergySource.values.and_(
                        EnergyValue.timestamp >= window_start,
                        EnergyValue.timestamp <= window_end,
                    )
                )
            )
            .order_by(desc(PowerGridBalance.last_update))
        )
        try:
            return (await self._db.scalars(stmt)).all()
        except (SQLAlchemyError, OSError) as e:
            raise StorageError("Failed to fetch electric balance data", cause=e) from e

    async def find_by_date(self, day: date) -> Sequence[PowerGridBalance]:
        """Find balances for a single day."""
        return await self.find_by_date_range(day, day)

    async def find_latest(self) -> PowerGridBalance | None:
        """Find the most recently updated balance.

        Each source carries at most its latest ``LATEST_VALUES_PER_SOURCE``
        values, newest first.
        """
        stmt = (
            select(PowerGridBalance)
            .options(
                selectinload(PowerGridBalance.categories).selectinload(EnergyCategory.sources)
            )
            .order_by(desc(PowerGridBalance.last_update))
            .limit(1)
        )
        try:
            balance = (await self._db.scalars(stmt)).first()
            if balance is None:
                return None

            sources = [source for category in balance.categories for source in category.sources]
            latest = await self._find_latest_values([source.id for source in sources])
        except (SQLAlchemyError, OSError) as e:
            raise StorageError("Failed to fetch latest electric balance", cause=e) from e

        for source in sources:
            set_committed_value(source, "values", latest.get(source.id, []))
        return balance

    async def _find_latest_values(self, source_ids: list[int]) -> dict[int, list[EnergyValue]]:
        if not source_ids:
            return {}

        # Latest N values per source using a window function
        ranked = (
            select(
                EnergyValue.id,
                func.row_number()
                .over(partition_by=EnergyValue.source_id, order_by=desc(EnergyValue.timestamp))
                .label("rn"),
            )
            .where(EnergyValue.source_id.in_(source_ids))
            .subquery()
        )
        stmt = (
            select(EnergyValue)
            .join(ranked, EnergyValue.id == ranked.c.id)
            .where(ranked.c.rn <= LATEST_VALUES_PER_SOURCE)
            .order_by(EnergyValue.source_id, desc(EnergyValue.timestamp))
        )

        result: dict[int, list[EnergyValue]] = {}
        for value in (await self._db.scalars(stmt)).all():
            result.setdefault(value.source_id, []).append(value)
        return result

    async def find_sources_by_category(
        self,
        category_type: str,
        start: date | None = None,
        end: date | None = None,
    ) -> Sequence[EnergySource]:
        """Find sources whose category has ``category_type``, ordered by title.

        With a date window, only sources having values in the window are
        returned and their values are restricted to it.
        """
        stmt = (
            select(EnergySource)
            .join(EnergySource.category)
            .where(EnergyCategory.type == category_type)
            .order_by(EnergySource.title)
        )

        if start is not None and end is not None:
            window_start, window_end = self._window(start, end)
            in_window = and_(
                EnergyValue.timestamp >= window_start, EnergyValue.timestamp <= window_end
            )
            stmt = stmt.where(EnergySource.values.any(in_window)).options(
                selectinload(EnergySource.values.and_(in_window)),
                selectinload(EnergySource.category),
            )
        else:
            stmt = stmt.options(
                selectinload(EnergySource.values), selectinload(EnergySource.category)
            )

        try:
            return (await self._db.scalars(stmt)).all()
        except (SQLAlchemyError, OSError) as e:
            raise StorageError("Failed to fetch energy sources by category", cause=e) from e
