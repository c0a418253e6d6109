"""Blob storage backends for objecthub.

Backends:
- FilesystemStorageBackend: Local filesystem (dev/test and the local gateway)

Environment Variables:
    OBJECTHUB_STORAGE_DIR: Base directory for the filesystem backend
    OBJECTHUB_OTEL_ENABLED: Emit OpenTelemetry spans for backend calls
"""

from objecthub.storage.backend import StorageBackend
from objecthub.storage.errors import (
    BlobNotFoundError,
    ObjectStorageError,
    PathTraversalError,
    StorageBackendError,
)
from objecthub.storage.filesystem_store import FilesystemStorageBackend

__all__ = [
    "StorageBackend",
    "FilesystemStorageBackend",
    "ObjectStorageError",
    "BlobNotFoundError",
    "PathTraversalError",
    "StorageBackendError",
]
