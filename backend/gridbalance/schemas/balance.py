"""Pydantic schemas for stored balance data."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class EnergyValue(BaseModel):
    """A single reading of a source."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    value: float
    percentage: float
    timestamp: datetime


class EnergySourceBase(BaseModel):
    """Source fields without its readings."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    ree_id: str
    group_id: str
    type: str
    title: str
    description: str | None = None
    color: str | None = None
    icon: str | None = None
    magnitude: str | None = None
    is_composite: bool = False
    last_update: datetime
    total: float = 0
    total_percentage: float = 0


class EnergySource(EnergySourceBase):
    """Source with its readings."""

    values: list[EnergyValue] = []


class EnergyCategorySummary(BaseModel):
    """Category fields without its sources."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    ree_id: str
    type: str
    title: str
    description: str | None = None
    last_update: datetime


class EnergyCategory(EnergyCategorySummary):
    """Category with its sources and readings."""

    sources: list[EnergySource] = []


class EnergySourceWithCategory(EnergySource):
    """Source listing entry, with the category it belongs to."""

    category: EnergyCategorySummary


class PowerGridBalance(BaseModel):
    """Balance for one day with its full category tree."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    ree_id: str
    balance_date: date
    type: str
    title: str
    description: str | None = None
    last_update: datetime
    cache_hit: bool = False
    cache_expire_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    categories: list[EnergyCategory] = []


class SchedulerStatus(BaseModel):
    """Scheduler state."""

    model_config = ConfigDict(from_attributes=True)

    is_running: bool
    job_count: int = Field(..., ge=0)


class SummaryStats(BaseModel):
    """Row counts and scheduler state for the dashboard header."""

    balance_count: int
    category_count: int
    source_count: int
    value_count: int
    latest_update: datetime | None = None
    scheduler: SchedulerStatus
