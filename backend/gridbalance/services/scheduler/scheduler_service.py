"""Scheduler for the REE balance ingestion jobs.

Four recurring jobs run while the scheduler is started:

- current day, every 15 minutes
- previous day, every hour (REE keeps revising a day for hours afterwards)
- historical backfill of 2 to 8 days ago, daily at 02:00
- retention cleanup, weekly on Sunday at 03:00

Scheduled runs never raise: failures are classified, logged and the job waits
for its next firing. ``manual_trigger`` runs the same job bodies on demand and
lets failures reach the caller.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, time, tzinfo
from functools import partial
from typing import Any

from gridbalance.constants import FetchKind
from gridbalance.services.exceptions import InvalidPayloadError, RemoteFetchError
from gridbalance.services.ingestion_service import IngestionService
from gridbalance.services.repositories import StorageError

from .recurring_task import Cadence, RecurringTask

logger = logging.getLogger(__name__)

CURRENT_DAY_CADENCE = Cadence.every_minutes(15)
PREVIOUS_DAY_CADENCE = Cadence.hourly()
HISTORICAL_CADENCE = Cadence.daily(time(2, 0))
CLEANUP_CADENCE = Cadence.weekly(6, time(3, 0))


@dataclass
class SchedulerStatus:
    """Snapshot of the scheduler state."""

    is_running: bool
    job_count: int


class IngestionScheduler:
    """Owns the recurring ingestion jobs.

    Usage:
        scheduler = IngestionScheduler(ingestion, retention_days=365)
        scheduler.start()       # from inside a running event loop
        ...
        await scheduler.aclose()
    """

    def __init__(
        self,
        ingestion: IngestionService,
        retention_days: int = 365,
        timezone: tzinfo = UTC,
    ) -> None:
        self._ingestion = ingestion
        self._retention_days = retention_days
        self._tz = timezone
        self._jobs: list[RecurringTask] = []
        self._stopped_jobs: list[RecurringTask] = []
        self._background: set[asyncio.Task] = set()
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(is_running=self._is_running, job_count=len(self._jobs))

    def _build_jobs(self) -> list[RecurringTask]:
        jobs = [
            ("current-day", CURRENT_DAY_CADENCE, self.fetch_current),
            ("previous-day", PREVIOUS_DAY_CADENCE, self.fetch_previous),
            ("historical", HISTORICAL_CADENCE, self.fetch_historical),
            ("cleanup", CLEANUP_CADENCE, self.cleanup_old_data),
        ]
        return [
            RecurringTask(name, cadence, body, timezone=self._tz) for name, cadence, body in jobs
        ]

    def start(self) -> None:
        """Register the recurring jobs and kick off an initial fetch.

        Must be called from a running event loop.
        """
        if self._is_running:
            logger.info("Scheduler already running")
            return

        logger.info("Starting REE data scheduler...")
        self._jobs = self._build_jobs()
        for job in self._jobs:
            job.start()
        self._is_running = True
        logger.info("REE data scheduler started with %d jobs", len(self._jobs))

        initial = asyncio.create_task(self._initial_fetch(), name="ree-initial-fetch")
        self._background.add(initial)
        initial.add_done_callback(self._background.discard)

    def stop(self) -> None:
        """Deregister every job. Job bodies already running finish on their own."""
        if not self._is_running:
            logger.info("Scheduler not running")
            return

        logger.info("Stopping REE data scheduler...")
        for job in self._jobs:
            job.cancel()
        # Only jobs whose loop has not exited yet need waiting on in aclose()
        self._stopped_jobs = [
            job for job in [*self._stopped_jobs, *self._jobs] if not job.is_finished
        ]
        self._jobs = []
        self._is_running = False
        logger.info("REE data scheduler stopped")

    async def aclose(self) -> None:
        """Stop and wait for in-flight job bodies and the initial fetch."""
        self.stop()
        pending = [job.wait_closed() for job in self._stopped_jobs]
        pending.extend(self._background)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._stopped_jobs = []

    async def manual_trigger(self, kind: FetchKind | str = FetchKind.CURRENT) -> Any:
        """Run one ingestion job now, whether or not the scheduler is running.

        Raises:
            ValueError: If ``kind`` is unknown
            RemoteFetchError, InvalidPayloadError, StorageError: From the job
        """
        kind = FetchKind(kind)
        logger.info("Manual fetch triggered: %s", kind.value)

        jobs: dict[FetchKind, Callable[[], Awaitable[Any]]] = {
            FetchKind.CURRENT: self._ingestion.ingest_current,
            FetchKind.PREVIOUS: self._ingestion.ingest_previous,
            FetchKind.HISTORICAL: self._ingestion.ingest_historical,
        }
        try:
            return await jobs[kind]()
        except Exception as e:
            logger.error("Manual fetch failed for %s: %s", kind.value, e)
            raise

    # ------------------------------------------------------------------
    # Scheduled job bodies (never raise)
    # ------------------------------------------------------------------

    async def fetch_current(self) -> None:
        await self._run_isolated("current day", self._ingestion.ingest_current)

    async def fetch_previous(self) -> None:
        await self._run_isolated("previous day", self._ingestion.ingest_previous)

    async def fetch_historical(self) -> None:
        await self._run_isolated("historical", self._ingestion.ingest_historical)

    async def cleanup_old_data(self) -> None:
        await self._run_isolated(
            "cleanup", partial(self._ingestion.purge, self._retention_days)
        )

    async def _initial_fetch(self) -> None:
        logger.info("Performing initial data fetch...")
        await self.fetch_current()
        await self.fetch_previous()
        logger.info("Initial data fetch finished")

    async def _run_isolated(self, context: str, job: Callable[[], Awaitable[Any]]) -> None:
        """Run ``job``, logging instead of raising on failure."""
        logger.info("Running %s job...", context)
        try:
            result = await job()
        except RemoteFetchError as e:
            logger.error(
                "Failed to fetch %s data: REE API error after %d attempts, "
                "will retry on the next run: %s",
                context,
                e.attempts,
                e,
            )
        except InvalidPayloadError as e:
            logger.error("Failed to fetch %s data: invalid REE payload: %s", context, e)
        except StorageError as e:
            logger.error("Failed to store %s data: database error, data may be lost: %s", context, e)
        except Exception:
            logger.exception("Unknown error during %s job", context)
        else:
            logger.info("%s job completed: %s", context.capitalize(), result)
