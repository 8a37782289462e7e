"""Recurring asyncio tasks on a wall-clock cadence."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta, tzinfo
from typing import Any

logger = logging.getLogger(__name__)

# Firing times are counted from this Monday at midnight (local wall time)
CADENCE_ANCHOR = datetime(2024, 1, 1)


@dataclass(frozen=True)
class Cadence:
    """Fires at ``anchor + offset + k * interval`` in local wall time.

    Examples:
        Cadence.every_minutes(15)              # :00, :15, :30, :45
        Cadence.hourly()                       # top of every hour
        Cadence.daily(time(2, 0))              # 02:00 every day
        Cadence.weekly(6, time(3, 0))          # Sunday 03:00
    """

    interval: timedelta
    offset: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        if self.interval <= timedelta(0):
            raise ValueError("interval must be positive")
        if not timedelta(0) <= self.offset < self.interval:
            raise ValueError("offset must be within [0, interval)")

    @classmethod
    def every_minutes(cls, minutes: int) -> "Cadence":
        return cls(timedelta(minutes=minutes))

    @classmethod
    def hourly(cls, minute: int = 0) -> "Cadence":
        return cls(timedelta(hours=1), timedelta(minutes=minute))

    @classmethod
    def daily(cls, at: time) -> "Cadence":
        return cls(timedelta(days=1), timedelta(hours=at.hour, minutes=at.minute))

    @classmethod
    def weekly(cls, weekday: int, at: time) -> "Cadence":
        """``weekday`` follows ``date.weekday()``: Monday is 0, Sunday is 6."""
        if not 0 <= weekday <= 6:
            raise ValueError("weekday must be between 0 and 6")
        return cls(timedelta(weeks=1), timedelta(days=weekday, hours=at.hour, minutes=at.minute))

    def next_run(self, now: datetime) -> datetime:
        """First firing strictly after ``now``, in ``now``'s timezone.

        Each wall-clock slot fires once. When clocks go back, the repeated
        hour's slots that are still ahead of ``now`` are returned with
        ``fold=1``, so the result is always a later instant than ``now``.
        """
        wall_now = now.replace(tzinfo=None, fold=0)
        first = CADENCE_ANCHOR + self.offset
        periods = (wall_now - first) // self.interval + 1
        candidate = (first + periods * self.interval).replace(tzinfo=now.tzinfo)
        if now.tzinfo is None:
            return candidate

        now_utc = now.astimezone(UTC)
        while candidate.astimezone(UTC) <= now_utc:
            repeated = candidate.replace(fold=1)
            if repeated.astimezone(UTC) > now_utc:
                return repeated
            candidate = (candidate.replace(tzinfo=None) + self.interval).replace(
                tzinfo=now.tzinfo
            )
        return candidate


def _now(tz: tzinfo) -> datetime:
    return datetime.now(tz)


class RecurringTask:
    """Runs an async body on a cadence until cancelled.

    The body always runs to completion before the next firing is computed, so
    one task never overlaps itself; a firing missed while the body was still
    running is skipped. Exceptions from the body are logged and the loop
    carries on.

    ``cancel()`` stops future firings. A body that is already running is left
    to finish.
    """

    def __init__(
        self,
        name: str,
        cadence: Cadence,
        body: Callable[[], Awaitable[Any]],
        timezone: tzinfo = UTC,
        clock: Callable[[tzinfo], datetime] = _now,
    ) -> None:
        self.name = name
        self.cadence = cadence
        self._body = body
        self._tz = timezone
        self._clock = clock
        self._task: asyncio.Task | None = None
        self._cancelled = False
        self._running_body = False
        self.run_count = 0

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done() and not self._cancelled

    @property
    def is_finished(self) -> bool:
        return self._task is not None and self._task.done()

    @property
    def is_running_body(self) -> bool:
        return self._running_body

    def start(self) -> None:
        """Schedule the loop on the running event loop."""
        if self._task is not None:
            raise RuntimeError(f"Recurring task {self.name} was already started")
        self._task = asyncio.create_task(self._loop(), name=f"recurring:{self.name}")

    def cancel(self) -> None:
        """Prevent future firings without interrupting a running body."""
        self._cancelled = True
        if self._task is not None and not self._running_body:
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the loop has exited."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    def seconds_until_next_run(self) -> float:
        now = self._clock(self._tz)
        next_run = self.cadence.next_run(now)
        # Subtract in UTC; aware datetimes sharing a tzinfo subtract as wall time
        return max((next_run.astimezone(UTC) - now.astimezone(UTC)).total_seconds(), 0.0)

    async def _loop(self) -> None:
        while not self._cancelled:
            await asyncio.sleep(self.seconds_until_next_run())
            if self._cancelled:
                break

            self._running_body = True
            try:
                await self._body()
            except Exception:
                logger.exception("Recurring task %s failed", self.name)
            finally:
                self._running_body = False
                self.run_count += 1

        logger.debug("Recurring task %s stopped", self.name)
