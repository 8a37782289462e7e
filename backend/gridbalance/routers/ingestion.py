"""Ingestion control API router - manual fetches and scheduler lifecycle."""

import logging

from fastapi import APIRouter, Depends, Query

from gridbalance.constants import FetchKind
from gridbalance.dependencies import get_scheduler
from gridbalance.schemas import MutationResponse, SchedulerStatus
from gridbalance.services.scheduler import IngestionScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ingestion"])


@router.post("/ingestion/fetch", response_model=MutationResponse)
async def manual_data_fetch(
    kind: FetchKind = Query(FetchKind.CURRENT, description="current, previous or historical"),
    scheduler: IngestionScheduler = Depends(get_scheduler),
):
    """
    Run an ingestion job immediately.

    Failures are reported in the response body rather than as an HTTP error,
    so the dashboard can show the message.
    """
    logger.info(f"Manual data fetch triggered: {kind.value}")
    try:
        await scheduler.manual_trigger(kind)
    except Exception as e:
        logger.error(f"Error in manual data fetch ({kind.value}): {e}")
        return MutationResponse(success=False, message=f"Failed to fetch data: {e}")

    return MutationResponse(success=True, message=f"Successfully fetched {kind.value} data")


@router.post("/scheduler/start", response_model=MutationResponse)
async def start_scheduler(scheduler: IngestionScheduler = Depends(get_scheduler)):
    """Start the recurring ingestion jobs."""
    try:
        scheduler.start()
    except Exception as e:
        logger.error(f"Error starting scheduler: {e}")
        return MutationResponse(success=False, message=f"Failed to start scheduler: {e}")

    return MutationResponse(success=True, message="Scheduler started successfully")


@router.post("/scheduler/stop", response_model=MutationResponse)
async def stop_scheduler(scheduler: IngestionScheduler = Depends(get_scheduler)):
    """Stop the recurring ingestion jobs."""
    try:
        scheduler.stop()
    except Exception as e:
        logger.error(f"Error stopping scheduler: {e}")
        return MutationResponse(success=False, message=f"Failed to stop scheduler: {e}")

    return MutationResponse(success=True, message="Scheduler stopped successfully")


@router.get("/scheduler/status", response_model=SchedulerStatus)
async def scheduler_status(scheduler: IngestionScheduler = Depends(get_scheduler)):
    """Current scheduler state."""
    return scheduler.status()
