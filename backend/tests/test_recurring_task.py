"""Tests for cadences and recurring asyncio tasks."""

import asyncio
import logging
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from gridbalance.services.scheduler import Cadence, RecurringTask

MADRID = ZoneInfo("Europe/Madrid")
FAST = Cadence(timedelta(milliseconds=10))


async def wait_for_runs(task: RecurringTask, runs: int, timeout: float = 2.0) -> None:
    async def poll():
        while task.run_count < runs:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout)


class TestCadence:
    """Tests for firing time computation."""

    def test_every_fifteen_minutes(self):
        """Quarter-hour cadence fires on the next quarter."""
        cadence = Cadence.every_minutes(15)
        assert cadence.next_run(datetime(2024, 5, 3, 10, 7, tzinfo=UTC)) == datetime(
            2024, 5, 3, 10, 15, tzinfo=UTC
        )

    def test_strictly_after_now(self):
        """A firing exactly at ``now`` is not returned."""
        cadence = Cadence.every_minutes(15)
        assert cadence.next_run(datetime(2024, 5, 3, 10, 15, tzinfo=UTC)) == datetime(
            2024, 5, 3, 10, 30, tzinfo=UTC
        )

    def test_hourly(self):
        """Hourly fires at the top of the next hour."""
        assert Cadence.hourly().next_run(datetime(2024, 5, 3, 23, 59, 59, tzinfo=UTC)) == datetime(
            2024, 5, 4, 0, 0, tzinfo=UTC
        )

    def test_daily(self):
        """Daily fires later today, or tomorrow once passed."""
        cadence = Cadence.daily(time(2, 0))
        assert cadence.next_run(datetime(2024, 5, 3, 1, 59)) == datetime(2024, 5, 3, 2, 0)
        assert cadence.next_run(datetime(2024, 5, 3, 2, 0)) == datetime(2024, 5, 4, 2, 0)

    def test_weekly_sunday(self):
        """Weekly Sunday 03:00 from a Wednesday lands on that week's Sunday."""
        cadence = Cadence.weekly(6, time(3, 0))
        next_run = cadence.next_run(datetime(2024, 1, 10, 12, 0))
        assert next_run == datetime(2024, 1, 14, 3, 0)
        assert next_run.weekday() == 6

    def test_keeps_timezone(self):
        """Firing times are wall-clock times in the caller's timezone."""
        next_run = Cadence.daily(time(2, 0)).next_run(datetime(2024, 7, 1, 12, 0, tzinfo=MADRID))
        assert next_run == datetime(2024, 7, 2, 2, 0, tzinfo=MADRID)
        assert next_run.tzinfo is MADRID

    def test_repeated_hour_after_clocks_go_back(self):
        """In the second pass of 02:00-03:00 the next firing is still ahead of now."""
        cadence = Cadence.every_minutes(15)
        now = datetime(2024, 10, 27, 2, 10, fold=1, tzinfo=MADRID)

        next_run = cadence.next_run(now)

        assert next_run.astimezone(UTC) == datetime(2024, 10, 27, 1, 15, tzinfo=UTC)
        assert next_run.fold == 1

    def test_leaving_repeated_hour(self):
        """The last slot of the repeated hour is followed by 03:00."""
        cadence = Cadence.every_minutes(15)
        now = datetime(2024, 10, 27, 2, 50, fold=1, tzinfo=MADRID)

        assert cadence.next_run(now).astimezone(UTC) == datetime(2024, 10, 27, 2, 0, tzinfo=UTC)

    def test_first_pass_of_repeated_hour(self):
        """Wall-clock slots fire once: 03:00 follows 02:45 of the first pass."""
        cadence = Cadence.every_minutes(15)
        now = datetime(2024, 10, 27, 2, 50, tzinfo=MADRID)

        next_run = cadence.next_run(now)

        assert next_run.astimezone(UTC) > now.astimezone(UTC)
        assert next_run.astimezone(UTC) == datetime(2024, 10, 27, 2, 0, tzinfo=UTC)

    def test_before_anchor(self):
        """Times before the anchor still resolve to the next firing."""
        cadence = Cadence.hourly(minute=30)
        assert cadence.next_run(datetime(2023, 6, 1, 8, 45)) == datetime(2023, 6, 1, 9, 30)

    @pytest.mark.parametrize(
        ("interval", "offset"),
        [
            (timedelta(0), timedelta(0)),
            (timedelta(hours=1), timedelta(hours=1)),
            (timedelta(hours=1), timedelta(minutes=-1)),
        ],
    )
    def test_invalid(self, interval, offset):
        """Non-positive intervals and out-of-range offsets are rejected."""
        with pytest.raises(ValueError):
            Cadence(interval, offset)

    def test_invalid_weekday(self):
        """Weekdays go from 0 (Monday) to 6 (Sunday)."""
        with pytest.raises(ValueError):
            Cadence.weekly(7, time(3, 0))


class TestRecurringTask:
    """Tests for the recurring task loop."""

    def test_seconds_until_next_run(self):
        """Delay is measured against the injected clock."""
        task = RecurringTask(
            "quarter",
            Cadence.every_minutes(15),
            body=lambda: asyncio.sleep(0),
            clock=lambda tz: datetime(2024, 5, 3, 10, 7, 30, tzinfo=tz),
        )
        assert task.seconds_until_next_run() == 450

    async def test_waits_during_repeated_hour(self):
        """A clock inside the repeated DST hour does not make the loop spin."""
        calls = []

        async def body():
            calls.append(1)

        task = RecurringTask(
            "quarter",
            Cadence.every_minutes(15),
            body,
            timezone=MADRID,
            clock=lambda tz: datetime(2024, 10, 27, 2, 10, fold=1, tzinfo=tz),
        )
        assert task.seconds_until_next_run() == 300

        task.start()
        await asyncio.sleep(0.05)
        task.cancel()
        await task.wait_closed()

        assert calls == []
        assert task.run_count == 0

    async def test_runs_repeatedly(self):
        """The body runs on every firing until cancelled."""
        calls = []

        async def body():
            calls.append(1)

        task = RecurringTask("fast", FAST, body)
        task.start()
        await wait_for_runs(task, 3)
        task.cancel()
        await task.wait_closed()

        assert len(calls) >= 3
        assert not task.is_active

    async def test_body_failure_does_not_stop_loop(self, caplog):
        """Exceptions are logged and the next firing still happens."""

        async def body():
            raise RuntimeError("boom")

        task = RecurringTask("failing", FAST, body)
        with caplog.at_level(logging.ERROR):
            task.start()
            await wait_for_runs(task, 2)
            task.cancel()
            await task.wait_closed()

        assert "Recurring task failing failed" in caplog.text

    async def test_start_twice(self):
        """A task can only be started once."""
        task = RecurringTask("once", Cadence.hourly(), lambda: asyncio.sleep(0))
        task.start()
        try:
            with pytest.raises(RuntimeError):
                task.start()
        finally:
            task.cancel()
            await task.wait_closed()

    async def test_cancel_before_first_firing(self):
        """Cancelling while waiting means the body never runs."""
        calls = []

        async def body():
            calls.append(1)

        task = RecurringTask("idle", Cadence.hourly(), body)
        task.start()
        await asyncio.sleep(0)
        assert task.is_active

        task.cancel()
        await task.wait_closed()

        assert calls == []
        assert not task.is_active

    async def test_cancel_during_body_lets_it_finish(self):
        """A running body completes and no further firing happens."""
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def body():
            started.set()
            await release.wait()
            finished.append(1)

        task = RecurringTask("slow", FAST, body)
        task.start()
        await asyncio.wait_for(started.wait(), 2.0)
        assert task.is_running_body

        task.cancel()
        assert not task.is_active
        release.set()
        await asyncio.wait_for(task.wait_closed(), 2.0)

        assert finished == [1]
        assert task.run_count == 1
        assert not task.is_running_body

    async def test_wait_closed_before_start(self):
        """Waiting on a task that never started returns at once."""
        task = RecurringTask("never", Cadence.hourly(), lambda: asyncio.sleep(0))
        await task.wait_closed()
