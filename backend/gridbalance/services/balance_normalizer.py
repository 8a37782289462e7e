"""Normalize raw REE balance payloads into typed records.

The REE API answers with a JSON-API-like document::

    {
        "data": {"id", "type", "attributes": {"title", "description",
                 "last-update"}, "meta": {"cache-control": {"cache", "expireAt"}}},
        "included": [<category>, ...]
    }

where each category carries its sources in ``attributes.content`` and each
source carries its time series in ``attributes.values``. ``included`` is known
to contain fragments that are neither, or that miss fields, so every level is
parsed best-effort: a fragment that fails its checks is dropped and logged,
and only a missing balance id/title is fatal.

Every ``parse_*`` function returns ``Ok(record)`` or ``Err(reason)`` and does
no I/O.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from gridbalance.constants import CATEGORY_TYPES
from gridbalance.services.exceptions import InvalidPayloadError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful parse."""

    value: T


@dataclass(frozen=True)
class Err:
    """Rejected fragment and why."""

    reason: str


@dataclass
class ValueRecord:
    """A single reading of a source."""

    value: float
    percentage: float
    timestamp: datetime


@dataclass
class SourceRecord:
    """An energy source and its readings."""

    ree_id: str
    group_id: str
    type: str
    title: str
    last_update: datetime
    description: str | None = None
    color: str | None = None
    icon: str | None = None
    magnitude: str | None = None
    is_composite: bool = False
    total: float = 0
    total_percentage: float = 0
    values: list[ValueRecord] = field(default_factory=list)


@dataclass
class CategoryRecord:
    """A category and the sources that belong to it."""

    ree_id: str
    type: str
    title: str
    last_update: datetime
    description: str | None = None
    sources: list[SourceRecord] = field(default_factory=list)


@dataclass
class BalanceRecord:
    """Top-level balance attributes."""

    ree_id: str
    title: str
    last_update: datetime
    type: str = "balance"
    description: str | None = None
    cache_hit: bool = False
    cache_expire_at: datetime | None = None


@dataclass
class NormalizedBalance:
    """Result of normalizing one payload."""

    balance: BalanceRecord
    categories: list[CategoryRecord]

    @property
    def source_count(self) -> int:
        return sum(len(category.sources) for category in self.categories)

    @property
    def value_count(self) -> int:
        return sum(
            len(source.values) for category in self.categories for source in category.sources
        )


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive timestamps are taken as UTC. Anything unparseable gives None.
    """
    if not isinstance(raw, str) or not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _is_number(raw: Any) -> bool:
    return isinstance(raw, int | float) and not isinstance(raw, bool)


def _text(raw: Any) -> str | None:
    """Non-empty string or None."""
    if isinstance(raw, str) and raw.strip():
        return raw
    return None


def _attributes(fragment: dict[str, Any]) -> dict[str, Any]:
    attributes = fragment.get("attributes")
    return attributes if isinstance(attributes, dict) else {}


def parse_balance(payload: Any) -> Ok[BalanceRecord] | Err:
    """Parse the top-level ``data`` object of a payload."""
    if not isinstance(payload, dict):
        return Err("payload is not an object")

    data = payload.get("data")
    if not isinstance(data, dict):
        return Err("missing data object")

    attributes = _attributes(data)
    ree_id = _text(data.get("id"))
    title = _text(attributes.get("title"))
    if ree_id is None or title is None:
        return Err("missing required data fields (id, title)")

    last_update = parse_timestamp(attributes.get("last-update"))
    if last_update is None:
        return Err("missing or invalid last-update")

    meta = data.get("meta") if isinstance(data.get("meta"), dict) else {}
    cache_control = meta.get("cache-control")
    if not isinstance(cache_control, dict):
        cache_control = {}

    return Ok(
        BalanceRecord(
            ree_id=ree_id,
            title=title,
            last_update=last_update,
            type=_text(data.get("type")) or "balance",
            description=_text(attributes.get("description")),
            cache_hit=cache_control.get("cache") == "HIT",
            cache_expire_at=parse_timestamp(cache_control.get("expireAt")),
        )
    )


def parse_value(fragment: Any) -> Ok[ValueRecord] | Err:
    """Parse one reading; needs a timestamp, a numeric value and percentage."""
    if not isinstance(fragment, dict):
        return Err("value is not an object")

    timestamp = parse_timestamp(fragment.get("datetime"))
    if timestamp is None:
        return Err("missing or invalid datetime")
    if not _is_number(fragment.get("value")):
        return Err("missing or non-numeric value")
    if not _is_number(fragment.get("percentage")):
        return Err("missing or non-numeric percentage")

    return Ok(
        ValueRecord(
            value=float(fragment["value"]),
            percentage=float(fragment["percentage"]),
            timestamp=timestamp,
        )
    )


def parse_source(fragment: Any, category_id: str) -> Ok[SourceRecord] | Err:
    """Parse a source nested in the category ``category_id``.

    Readings that fail ``parse_value`` are dropped individually; the source
    itself is kept.
    """
    if not isinstance(fragment, dict):
        return Err("source is not an object")

    group_id = fragment.get("groupId")
    if group_id != category_id:
        return Err(f"groupId {group_id!r} does not match category {category_id!r}")

    attributes = _attributes(fragment)
    ree_id = _text(fragment.get("id"))
    source_type = _text(fragment.get("type"))
    title = _text(attributes.get("title"))
    last_update = parse_timestamp(attributes.get("last-update"))
    if ree_id is None or source_type is None or title is None or last_update is None:
        return Err("missing required source fields (id, type, title, last-update)")

    values: list[ValueRecord] = []
    raw_values = attributes.get("values")
    for raw_value in raw_values if isinstance(raw_values, list) else []:
        result = parse_value(raw_value)
        if isinstance(result, Ok):
            values.append(result.value)
        else:
            logger.debug("Dropping value of source %s: %s", ree_id, result.reason)

    total = attributes.get("total")
    total_percentage = attributes.get("total-percentage")
    composite = attributes.get("composite")

    return Ok(
        SourceRecord(
            ree_id=ree_id,
            group_id=category_id,
            type=source_type,
            title=title,
            last_update=last_update,
            description=_text(attributes.get("description")),
            color=_text(attributes.get("color")),
            icon=_text(attributes.get("icon")),
            magnitude=_text(attributes.get("magnitude")),
            is_composite=composite if isinstance(composite, bool) else False,
            total=float(total) if _is_number(total) else 0,
            total_percentage=float(total_percentage) if _is_number(total_percentage) else 0,
            values=values,
        )
    )


def parse_category(fragment: Any) -> Ok[CategoryRecord] | Err:
    """Parse an ``included`` fragment as a category.

    A fragment is a category only if its type is a known category type and it
    has an id, title, last-update and a ``content`` list of sources.
    """
    if not isinstance(fragment, dict):
        return Err("fragment is not an object")

    category_type = fragment.get("type")
    if category_type not in CATEGORY_TYPES:
        return Err(f"type {category_type!r} is not a category type")

    attributes = _attributes(fragment)
    ree_id = _text(fragment.get("id"))
    title = _text(attributes.get("title"))
    last_update = parse_timestamp(attributes.get("last-update"))
    if ree_id is None or title is None or last_update is None:
        return Err("missing required category fields (id, title, last-update)")

    content = attributes.get("content")
    if not isinstance(content, list):
        return Err("content is not a list")

    sources: list[SourceRecord] = []
    for raw_source in content:
        result = parse_source(raw_source, ree_id)
        if isinstance(result, Ok):
            sources.append(result.value)
        else:
            logger.debug("Dropping source in category %s: %s", ree_id, result.reason)

    return Ok(
        CategoryRecord(
            ree_id=ree_id,
            type=category_type,
            title=title,
            last_update=last_update,
            description=_text(attributes.get("description")),
            sources=sources,
        )
    )


def normalize(payload: Any) -> NormalizedBalance:
    """Turn a raw REE payload into a balance and its category tree.

    Raises:
        InvalidPayloadError: If the balance id, title or last-update is missing
    """
    balance_result = parse_balance(payload)
    if isinstance(balance_result, Err):
        raise InvalidPayloadError(f"Invalid API response: {balance_result.reason}")

    included = payload.get("included")
    if not isinstance(included, list):
        included = []

    categories: list[CategoryRecord] = []
    skipped = 0
    for fragment in included:
        result = parse_category(fragment)
        if isinstance(result, Ok):
            categories.append(result.value)
        else:
            skipped += 1
            logger.debug("Skipping included fragment: %s", result.reason)

    normalized = NormalizedBalance(balance=balance_result.value, categories=categories)
    logger.info(
        "Normalized balance %s: %d categories, %d sources, %d values (%d fragments skipped)",
        normalized.balance.ree_id,
        len(categories),
        normalized.source_count,
        normalized.value_count,
        skipped,
    )
    return normalized
