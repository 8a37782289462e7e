"""Services layer - ingestion pipeline and external integrations.

This module is organized into subpackages:
- repositories/: Data access layer
- scheduler/: Recurring ingestion jobs
- shared/: Shared HTTP utilities

Common imports for convenience:
    from gridbalance.services import IngestionService, ReeApiClient
"""

from gridbalance.services.exceptions import IngestionError, InvalidPayloadError, RemoteFetchError
from gridbalance.services.ingestion_service import IngestionResult, IngestionService
from gridbalance.services.ree_client import ReeApiClient

__all__ = [
    # Pipeline
    "IngestionResult",
    "IngestionService",
    "ReeApiClient",
    # Errors
    "IngestionError",
    "InvalidPayloadError",
    "RemoteFetchError",
]
