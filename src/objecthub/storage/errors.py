"""Storage backend error types.

All errors are fail-closed: operations that cannot complete safely raise.
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for storage backend operations.

    Attributes:
        message: Human-readable error message.
        storage_id: Storage id associated with the operation (if applicable).
    """

    def __init__(self, message: str, *, storage_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.storage_id = storage_id

    def __str__(self) -> str:
        if self.storage_id:
            return f"{self.message} storage_id={self.storage_id}"
        return self.message


class BlobNotFoundError(ObjectStorageError):
    """Raised when no bytes are stored under a storage id."""

    def __init__(
        self,
        message: str = "Blob not found",
        *,
        storage_id: str | None = None,
    ) -> None:
        super().__init__(message, storage_id=storage_id)


class PathTraversalError(ObjectStorageError):
    """Raised when a storage id would escape the storage base directory.

    Storage ids are hex digests in practice; anything containing separators,
    dot segments or NUL bytes is rejected before touching the filesystem.
    """

    def __init__(
        self,
        message: str = "Invalid storage id: path traversal detected",
        *,
        storage_id: str | None = None,
    ) -> None:
        super().__init__(message, storage_id=storage_id)


class StorageBackendError(ObjectStorageError):
    """Raised when the backend itself fails (disk full, permissions, I/O)."""

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        storage_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, storage_id=storage_id)
        self.cause = cause
