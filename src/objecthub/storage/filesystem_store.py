"""Filesystem storage backend.

Blobs live flat under the base directory, one file per storage id:

    {base_dir}/{storage_id}

Writes go to ``{storage_id}.<uuid>.tmp`` first and are renamed into place, so
a reader never observes a partially written blob.

Environment Variables:
    OBJECTHUB_STORAGE_DIR: Base directory for blobs
        (default: tempfile.gettempdir() / objecthub-local-s3)
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import uuid
from pathlib import Path

from objecthub.storage.backend import StorageBackend
from objecthub.storage.errors import (
    BlobNotFoundError,
    PathTraversalError,
    StorageBackendError,
)
from objecthub.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

OBJECTHUB_STORAGE_DIR_ENV = "OBJECTHUB_STORAGE_DIR"

_SAFE_STORAGE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-.]+$")


def _is_unsafe_storage_id(storage_id: str) -> bool:
    """Check whether a storage id could address anything outside base_dir.

    Rejects empty ids, NUL bytes, both path separators, and the "." and ".."
    segments, then requires the conservative safe-character pattern.
    """
    if not storage_id:
        return True
    if "\x00" in storage_id or "/" in storage_id or "\\" in storage_id:
        return True
    if storage_id in (".", ".."):
        return True
    return not _SAFE_STORAGE_ID_PATTERN.match(storage_id)


def _validate_storage_id(storage_id: str) -> None:
    if _is_unsafe_storage_id(storage_id):
        raise PathTraversalError(
            message="Invalid storage id: path traversal or unsafe characters detected",
            storage_id=storage_id,
        )


def default_storage_dir() -> Path:
    """Return the configured base directory for the filesystem backend."""
    configured = os.environ.get(OBJECTHUB_STORAGE_DIR_ENV)
    if configured:
        return Path(configured)
    return Path(tempfile.gettempdir()) / "objecthub-local-s3"


class FilesystemStorageBackend(StorageBackend):
    """Filesystem-based blob storage keyed by storage id."""

    def __init__(self, base_dir: str | Path | None = None) -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Base directory for blobs. If None, uses
                OBJECTHUB_STORAGE_DIR or the OS temp directory.
        """
        if base_dir is None:
            base_dir = default_storage_dir()

        self._base_dir = Path(base_dir).resolve()
        logger.debug("FilesystemStorageBackend initialized with base_dir=%s", self._base_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    def path_for(self, storage_id: str) -> Path:
        """Return the file path for a storage id, validating it first."""
        _validate_storage_id(storage_id)
        path = self._base_dir / storage_id
        try:
            path.resolve().relative_to(self._base_dir)
        except ValueError as e:
            raise PathTraversalError(
                message="Path resolves outside storage base directory",
                storage_id=storage_id,
            ) from e
        return path

    @traced_storage_operation("exists")
    def exists(self, storage_id: str) -> bool:
        """Check whether a blob file exists for storage_id."""
        path = self.path_for(storage_id)
        try:
            return path.is_file()
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to stat blob: {e}",
                storage_id=storage_id,
                cause=e,
            ) from e

    @traced_storage_operation("read")
    def read(self, storage_id: str) -> bytes:
        """Read the blob stored under storage_id."""
        path = self.path_for(storage_id)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise BlobNotFoundError(storage_id=storage_id) from None
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to read blob: {e}",
                storage_id=storage_id,
                cause=e,
            ) from e

    @traced_storage_operation("write")
    def write(self, storage_id: str, data: bytes) -> int:
        """Write the blob for storage_id atomically."""
        path = self.path_for(storage_id)
        tmp_file = self._base_dir / f"{storage_id}.{uuid.uuid4().hex}.tmp"
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            tmp_file.write_bytes(data)
            tmp_file.replace(path)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to write blob: {e}",
                storage_id=storage_id,
                cause=e,
            ) from e

        logger.debug("Stored blob: storage_id=%s size=%d", storage_id, len(data))
        return len(data)
