"""Tests for the filesystem storage backend.

- Write then read returns identical bytes
- Storage ids that could escape the base directory are rejected
- Writes are atomic: no temp files are left behind
- With tracing enabled, spans carry the storage id and never a path
"""

from __future__ import annotations

from pathlib import Path

import pytest

from objecthub.storage.errors import BlobNotFoundError, PathTraversalError
from objecthub.storage.filesystem_store import (
    OBJECTHUB_STORAGE_DIR_ENV,
    FilesystemStorageBackend,
    default_storage_dir,
)

STORAGE_ID = "064127259a2b4c0a821a63864ccf1a44681bfd0846adcfa5fb843ebaf564955f"


@pytest.fixture
def backend(tmp_path: Path) -> FilesystemStorageBackend:
    return FilesystemStorageBackend(base_dir=tmp_path)


class TestReadWrite:
    def test_write_then_read(self, backend: FilesystemStorageBackend) -> None:
        written = backend.write(STORAGE_ID, b"hello")

        assert written == 5
        assert backend.read(STORAGE_ID) == b"hello"
        assert backend.exists(STORAGE_ID) is True

    def test_missing_blob(self, backend: FilesystemStorageBackend) -> None:
        assert backend.exists(STORAGE_ID) is False
        with pytest.raises(BlobNotFoundError):
            backend.read(STORAGE_ID)

    def test_overwrite_replaces_content(self, backend: FilesystemStorageBackend) -> None:
        backend.write(STORAGE_ID, b"first")
        backend.write(STORAGE_ID, b"second")

        assert backend.read(STORAGE_ID) == b"second"

    def test_no_temp_files_left(self, backend: FilesystemStorageBackend, tmp_path: Path) -> None:
        backend.write(STORAGE_ID, b"hello")

        assert [p.name for p in tmp_path.iterdir()] == [STORAGE_ID]

    def test_base_dir_created_on_first_write(self, tmp_path: Path) -> None:
        backend = FilesystemStorageBackend(base_dir=tmp_path / "nested" / "blobs")
        backend.write(STORAGE_ID, b"x")

        assert (tmp_path / "nested" / "blobs" / STORAGE_ID).is_file()


class TestPathTraversal:
    @pytest.mark.parametrize(
        "storage_id",
        ["", ".", "..", "../x", "..\\x", "/etc/passwd", "a/b", "a\x00b", "with space"],
    )
    def test_unsafe_ids_rejected(
        self, backend: FilesystemStorageBackend, storage_id: str
    ) -> None:
        with pytest.raises(PathTraversalError):
            backend.exists(storage_id)
        with pytest.raises(PathTraversalError):
            backend.write(storage_id, b"x")


class TestDefaultStorageDir:
    def test_env_override(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv(OBJECTHUB_STORAGE_DIR_ENV, str(tmp_path / "configured"))

        assert default_storage_dir() == tmp_path / "configured"
        assert FilesystemStorageBackend().base_dir == (tmp_path / "configured").resolve()


class TestTracing:
    def test_spans_carry_storage_id_not_path(
        self, monkeypatch: pytest.MonkeyPatch, backend: FilesystemStorageBackend
    ) -> None:
        from objecthub.observability.tracing import configure_tracing, get_finished_spans

        monkeypatch.setenv("OBJECTHUB_OTEL_ENABLED", "1")
        monkeypatch.setenv("OBJECTHUB_OTEL_TEST_CAPTURE", "1")
        assert configure_tracing() is True

        backend.write(STORAGE_ID, b"hello")

        spans = [s for s in get_finished_spans() if s.name == "objecthub.storage.write"]
        assert spans
        attributes = dict(spans[-1].attributes or {})
        assert attributes["objecthub.storage_id"] == STORAGE_ID
        assert attributes["objecthub.blob_size_bytes"] == 5
        assert attributes["storage.backend"] == "filesystem"
        assert not any(str(backend.base_dir) in str(value) for value in attributes.values())
