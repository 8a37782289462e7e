"""Recurring ingestion jobs."""

from .recurring_task import Cadence, RecurringTask
from .scheduler_service import IngestionScheduler, SchedulerStatus

__all__ = ["Cadence", "IngestionScheduler", "RecurringTask", "SchedulerStatus"]
