"""REE (Red Eléctrica de España) open data API client.

Fetches the electric balance ("balance eléctrico") for a time window. The
payload is returned as parsed JSON without interpretation; turning it into
domain records is the job of ``balance_normalizer``.

Two retry layers apply to every window request:

1. Service level (this module): up to ``max_retries`` attempts, waiting
   ``retry_delay * attempt`` seconds between them.
2. Transport level (``AsyncHTTPClient``): each attempt retries a timeout or
   refused connection once more with a short exponential backoff.
"""

import calendar
import logging
from datetime import date, datetime, time
from typing import Any
from zoneinfo import ZoneInfo

import httpx
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_incrementing

from gridbalance.constants import BALANCE_ENDPOINT, TimeTrunc
from gridbalance.services.exceptions import RemoteFetchError
from gridbalance.services.shared.http_client import AsyncHTTPClient, HTTPClientError

logger = logging.getLogger(__name__)

REE_BASE_URL = "https://apidatos.ree.es"
REE_TIMEZONE = "Europe/Madrid"

# REE expects minutes precision, no seconds and no offset
REE_DATETIME_FORMAT = "%Y-%m-%dT%H:%M"

END_OF_DAY = time(23, 59)


class ReeApiClient(AsyncHTTPClient):
    """Client for the REE electric balance endpoint.

    Usage:
        async with ReeApiClient() as client:
            payload = await client.fetch_date(date(2024, 1, 1))
    """

    def __init__(
        self,
        base_url: str = REE_BASE_URL,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timezone: str = REE_TIMEZONE,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize REE client.

        Args:
            base_url: API root, without the language/path segments
            timeout: Per-request timeout in seconds
            max_retries: Service-level attempts per window request
            retry_delay: Base delay in seconds; attempt N waits N * retry_delay
            timezone: Grid timezone used to resolve "today" and day boundaries
            client: Optional pre-built httpx client (not closed by this class)
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        super().__init__(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Accept": "application/json"},
            client=client,
        )
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.tz = ZoneInfo(timezone)

    def _format_datetime(self, value: datetime) -> str:
        """Format a datetime the way REE expects it, in grid local time."""
        if value.tzinfo is not None:
            value = value.astimezone(self.tz)
        return value.strftime(REE_DATETIME_FORMAT)

    def build_params(
        self, start: datetime, end: datetime, time_trunc: TimeTrunc | str
    ) -> dict[str, str]:
        """Build the query string for a balance window request."""
        return {
            "start_date": self._format_datetime(start),
            "end_date": self._format_datetime(end),
            "time_trunc": TimeTrunc(time_trunc).value,
        }

    def _log_failed_attempt(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "REE API attempt %d/%d failed: %s",
            retry_state.attempt_number,
            self.max_retries,
            exc,
        )

    async def _fetch_once(self, params: dict[str, str]) -> dict[str, Any]:
        payload = await self.get_json(BALANCE_ENDPOINT, params=params)
        if not isinstance(payload, dict):
            raise HTTPClientError("No data received from REE API")
        return payload

    async def fetch_window(
        self,
        start: datetime,
        end: datetime,
        time_trunc: TimeTrunc | str = TimeTrunc.DAY,
    ) -> dict[str, Any]:
        """Fetch the electric balance for ``[start, end]``.

        Args:
            start: Window start
            end: Window end
            time_trunc: hour, day, month or year

        Returns:
            Raw JSON payload as a dict

        Raises:
            ValueError: If ``time_trunc`` is not a supported truncation
            RemoteFetchError: If every attempt failed
        """
        params = self.build_params(start, end, time_trunc)
        logger.info(
            "Fetching REE balance %s -> %s (%s)",
            params["start_date"],
            params["end_date"],
            params["time_trunc"],
        )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
                before_sleep=self._log_failed_attempt,
                reraise=True,
            ):
                with attempt:
                    return await self._fetch_once(params)
        except Exception as e:
            logger.error(
                "REE API attempt %d/%d failed, giving up: %s", self.max_retries, self.max_retries, e
            )
            raise RemoteFetchError(
                f"Failed to fetch data after {self.max_retries} attempts: {e}",
                attempts=self.max_retries,
                cause=e,
            ) from e

        # AsyncRetrying either returns from inside the loop or raises
        raise RemoteFetchError("Unexpected error in fetch_window", attempts=self.max_retries)

    async def fetch_date(self, day: date) -> dict[str, Any]:
        """Fetch a single calendar day (00:00 to 23:59, grid time)."""
        start = datetime.combine(day, time.min, tzinfo=self.tz)
        end = datetime.combine(day, END_OF_DAY, tzinfo=self.tz)
        return await self.fetch_window(start, end, TimeTrunc.DAY)

    async def fetch_today(self) -> dict[str, Any]:
        """Fetch the current day in grid time."""
        return await self.fetch_date(self.today())

    async def fetch_date_range(self, start: date, end: date) -> dict[str, Any]:
        """Fetch several days at once with daily aggregation."""
        if start > end:
            raise ValueError(f"start ({start}) must not be after end ({end})")
        return await self.fetch_window(
            datetime.combine(start, time.min, tzinfo=self.tz),
            datetime.combine(end, END_OF_DAY, tzinfo=self.tz),
            TimeTrunc.DAY,
        )

    async def fetch_month(self, year: int, month: int) -> dict[str, Any]:
        """Fetch a calendar month with daily aggregation."""
        if not 1 <= month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {month}")
        last_day = calendar.monthrange(year, month)[1]
        return await self.fetch_date_range(date(year, month, 1), date(year, month, last_day))

    def today(self) -> date:
        """Current calendar date in the grid timezone."""
        return datetime.now(self.tz).date()
