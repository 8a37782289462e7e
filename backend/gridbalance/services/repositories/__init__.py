"""Repository layer - data access abstraction.

Repositories handle all database queries, providing a clean interface
for services. Services should use repositories for data access rather
than directly querying SQLAlchemy models.

Dependency direction: Services -> Repositories -> Models
"""

from .balance_repository import BalanceRepository, SummaryCounts
from .exceptions import RepositoryError, StorageError

__all__ = [
    "BalanceRepository",
    "RepositoryError",
    "StorageError",
    "SummaryCounts",
]
