"""Ingestion pipeline exceptions."""


class IngestionError(Exception):
    """Base exception for the balance ingestion pipeline."""


class RemoteFetchError(IngestionError):
    """The REE API could not be reached, or kept failing, after every retry."""

    def __init__(self, message: str, attempts: int, cause: BaseException | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.cause = cause


class InvalidPayloadError(IngestionError):
    """The API response is missing the fields a balance cannot exist without."""
