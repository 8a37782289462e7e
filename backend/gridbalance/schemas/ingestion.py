"""Pydantic schemas for ingestion control endpoints."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field


class MutationResponse(BaseModel):
    """Outcome of a control action; failures are reported, never raised."""

    success: bool
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
