"""Storage backend interface.

The control plane only asks the backend three things: does a blob exist,
give me its bytes, and store these bytes. Clients move bytes through signed
URLs; the local gateway is the only in-process reader and writer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class StorageBackend(ABC):
    """Abstract base class for blob storage backends.

    Implementations:
    - FilesystemStorageBackend: Local filesystem (dev/test, local gateway)
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability."""
        ...

    @abstractmethod
    def exists(self, storage_id: str) -> bool:
        """Check whether bytes are stored under storage_id.

        Raises:
            PathTraversalError: If storage_id is not a safe identifier.
            StorageBackendError: If the backend cannot answer.
        """
        ...

    @abstractmethod
    def read(self, storage_id: str) -> bytes:
        """Return the bytes stored under storage_id.

        Raises:
            BlobNotFoundError: If nothing is stored under storage_id.
            PathTraversalError: If storage_id is not a safe identifier.
            StorageBackendError: If the backend cannot complete the read.
        """
        ...

    @abstractmethod
    def write(self, storage_id: str, data: bytes) -> int:
        """Store data under storage_id, replacing any previous bytes atomically.

        Returns:
            Number of bytes written.

        Raises:
            PathTraversalError: If storage_id is not a safe identifier.
            StorageBackendError: If the backend cannot complete the write.
        """
        ...
