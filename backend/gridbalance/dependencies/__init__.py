"""FastAPI dependencies resolving the components built in the app lifespan."""

from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from gridbalance.services.repositories import BalanceRepository
from gridbalance.services.scheduler import IngestionScheduler


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Database session dependency for FastAPI routes.

    Yields:
        AsyncSession: SQLAlchemy session from the app's session factory
    """
    async with request.app.state.session_factory() as db:
        yield db


def get_balance_repository(
    request: Request, db: AsyncSession = Depends(get_db)
) -> BalanceRepository:
    """Balance repository bound to the request session and grid timezone."""
    return BalanceRepository(db, request.app.state.grid_timezone)


def get_scheduler(request: Request) -> IngestionScheduler:
    """The process-wide ingestion scheduler."""
    return request.app.state.scheduler
