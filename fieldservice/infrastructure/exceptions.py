"""Infrastructure exceptions for document store and snapshot operations.

These extend FieldServiceException so presentation can map them
to HTTP responses consistently.
"""

from fieldservice.domain.exceptions import FieldServiceException


class DocumentStoreException(FieldServiceException):
    """Base exception for document store operations."""


class DocumentStoreUnavailableError(DocumentStoreException):
    """Backend could not be reached or returned an unexpected status."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"Document store unavailable for {path}",
            "DOCUMENT_STORE_UNAVAILABLE",
            {"path": path, "reason": reason},
        )


class DocumentWriteDeniedError(DocumentStoreException):
    """Backend rejected a write (security rules or credentials)."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Write denied for {path}",
            "DOCUMENT_WRITE_DENIED",
            {"path": path},
        )


class SnapshotWriteError(FieldServiceException):
    """Offline permission snapshot could not be written."""

    def __init__(self, file_path: str, reason: str) -> None:
        super().__init__(
            f"Failed to write offline snapshot: {file_path}",
            "SNAPSHOT_WRITE_ERROR",
            {"file_path": file_path, "reason": reason},
        )
