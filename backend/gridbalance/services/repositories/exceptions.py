"""Repository-specific exceptions.

These exceptions provide semantic meaning for data access errors,
separating them from general database errors.
"""


class RepositoryError(Exception):
    """Base exception for repository operations."""


class StorageError(RepositoryError):
    """Unexpected failure talking to the database.

    The underlying SQLAlchemy exception is kept on ``cause`` and chained as
    ``__cause__`` by the code that raises this.
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message if cause is None else f"{message}: {cause}")
        self.cause = cause
