"""Pydantic schemas for API requests and responses."""

from gridbalance.schemas.balance import (
    EnergyCategory,
    EnergyCategorySummary,
    EnergySource,
    EnergySourceWithCategory,
    EnergyValue,
    PowerGridBalance,
    SchedulerStatus,
    SummaryStats,
)
from gridbalance.schemas.ingestion import MutationResponse

__all__ = [
    "EnergyCategory",
    "EnergyCategorySummary",
    "EnergySource",
    "EnergySourceWithCategory",
    "EnergyValue",
    "MutationResponse",
    "PowerGridBalance",
    "SchedulerStatus",
    "SummaryStats",
]
