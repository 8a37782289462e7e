"""Balances API router - read access to stored balance data."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from gridbalance.dependencies import get_balance_repository, get_scheduler
from gridbalance.schemas import (
    EnergySourceWithCategory,
    PowerGridBalance,
    SchedulerStatus,
    SummaryStats,
)
from gridbalance.services.repositories import BalanceRepository, StorageError
from gridbalance.services.scheduler import IngestionScheduler

router = APIRouter(prefix="/api", tags=["balances"])

# Longest window a single range query may cover
MAX_RANGE_DAYS = 365


def _validate_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="start_date must be before end_date",
        )
    if (end_date - start_date).days > MAX_RANGE_DAYS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Date range cannot exceed {MAX_RANGE_DAYS} days",
        )


def _unavailable(e: StorageError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/balances", response_model=list[PowerGridBalance])
async def list_balances(
    start_date: date = Query(..., description="First day (YYYY-MM-DD)"),
    end_date: date = Query(..., description="Last day (YYYY-MM-DD)"),
    repo: BalanceRepository = Depends(get_balance_repository),
):
    """Balances for a date range, newest update first."""
    _validate_range(start_date, end_date)
    try:
        return await repo.find_by_date_range(start_date, end_date)
    except StorageError as e:
        raise _unavailable(e) from e


@router.get("/balances/latest", response_model=PowerGridBalance)
async def get_latest_balance(repo: BalanceRepository = Depends(get_balance_repository)):
    """Most recently updated balance with its latest values."""
    try:
        balance = await repo.find_latest()
    except StorageError as e:
        raise _unavailable(e) from e

    if balance is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No balance data stored")
    return balance


@router.get("/balances/{balance_date}", response_model=list[PowerGridBalance])
async def get_balances_for_date(
    balance_date: date, repo: BalanceRepository = Depends(get_balance_repository)
):
    """Balances stored for a single day."""
    try:
        return await repo.find_by_date(balance_date)
    except StorageError as e:
        raise _unavailable(e) from e


@router.get("/sources", response_model=list[EnergySourceWithCategory])
async def list_sources_by_category(
    category_type: str = Query(..., description="Renovable, No-Renovable, Almacenamiento or Demanda"),
    start_date: date | None = None,
    end_date: date | None = None,
    repo: BalanceRepository = Depends(get_balance_repository),
):
    """Energy sources of a category type, optionally limited to a date range."""
    if (start_date is None) != (end_date is None):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="start_date and end_date must be given together",
        )
    if start_date is not None and end_date is not None:
        _validate_range(start_date, end_date)

    try:
        return await repo.find_sources_by_category(category_type, start_date, end_date)
    except StorageError as e:
        raise _unavailable(e) from e


@router.get("/stats", response_model=SummaryStats)
async def get_summary_stats(
    repo: BalanceRepository = Depends(get_balance_repository),
    scheduler: IngestionScheduler = Depends(get_scheduler),
):
    """Row counts, latest update and scheduler state."""
    try:
        counts = await repo.summary_counts()
    except StorageError as e:
        raise _unavailable(e) from e

    scheduler_status = scheduler.status()
    return SummaryStats(
        balance_count=counts.balances,
        category_count=counts.categories,
        source_count=counts.sources,
        value_count=counts.values,
        latest_update=counts.most_recent_update,
        scheduler=SchedulerStatus(
            is_running=scheduler_status.is_running, job_count=scheduler_status.job_count
        ),
    )
