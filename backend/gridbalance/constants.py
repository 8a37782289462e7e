"""Constants shared across the ingestion pipeline."""

from enum import Enum


class TimeTrunc(str, Enum):
    """Time bucketing granularity accepted by the REE API."""

    HOUR = "hour"
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


class FetchKind(str, Enum):
    """Ingestion jobs that can be triggered manually."""

    CURRENT = "current"
    PREVIOUS = "previous"
    HISTORICAL = "historical"


# Electric balance endpoint, relative to the API base URL
BALANCE_ENDPOINT = "/es/datos/balance/balance-electrico"

# Upstream type tags of the fragments that are categories
# (renewable, non-renewable, storage, demand)
CATEGORY_TYPES = frozenset({"Renovable", "No-Renovable", "Almacenamiento", "Demanda"})

# Backfill window, in days before today (inclusive on both ends)
HISTORICAL_START_OFFSET_DAYS = 2
HISTORICAL_END_OFFSET_DAYS = 8

# Values kept per source when reading the latest balance
LATEST_VALUES_PER_SOURCE = 50
