"""Custom exceptions for the law search engine."""

from typing import Any


class LawSearchException(Exception):
    """Base exception for the law search engine."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ExternalServiceError(LawSearchException):
    """Raised when an outbound call to a collaborating service fails."""

    pass


class DatabaseConnectionError(ExternalServiceError):
    """Raised when database connection fails."""

    pass


class ArticleStoreError(DatabaseConnectionError):
    """Raised when MongoDB article store or Atlas Search operations fail."""

    pass


class QdrantError(DatabaseConnectionError):
    """Raised when Qdrant operations fail."""

    pass


class EmbeddingError(ExternalServiceError):
    """Raised when embedding generation fails."""

    pass


class SearchError(LawSearchException):
    """Raised when vector search fails."""

    pass


class IngestionError(LawSearchException):
    """Raised when building the vector index fails."""

    pass
