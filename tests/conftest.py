"""Pytest configuration and fixtures for objecthub tests.

Every test starts from empty in-memory stores and with the objecthub
environment variables unset, so no test accidentally reaches a real
database or another test's records.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from objecthub.persistence.repositories import objects as objects_repo_module
from objecthub.persistence.repositories import subscriptions as subscriptions_repo_module
from objecthub.persistence.repositories.objects import InMemoryObjectsRepository
from objecthub.services.objects.access import AccessIssuer
from objecthub.services.objects.quota import QuotaEngine
from objecthub.services.objects.service import ObjectService
from objecthub.services.objects.tokens import ObjectTokenConfig
from objecthub.storage.filesystem_store import FilesystemStorageBackend

TEST_TOKEN_SECRET = "test-object-token-secret"
TEST_PUBLIC_URL = "http://objecthub.test"

_OBJECTHUB_ENV_VARS = (
    "OBJECTHUB_DATABASE_URL",
    "OBJECTHUB_DATABASE_ADMIN_URL",
    "OBJECTHUB_DEFAULT_PLAN",
    "OBJECTHUB_OBJECT_TOKEN_SECRET",
    "OBJECTHUB_OBJECT_TOKEN_TTL",
    "OBJECTHUB_PUBLIC_URL",
    "OBJECTHUB_STORAGE_DIR",
    "OBJECTHUB_OTEL_ENABLED",
    "OBJECTHUB_API_KEYS_JSON",
)


class StaticQuotaSource:
    """Quota source with fixed per-owner quotas."""

    def __init__(self, quotas: dict[str, int] | None = None, default: int = 10**9) -> None:
        self.quotas = dict(quotas or {})
        self.default = default

    def quota_for(self, owner: str) -> int:
        return self.quotas.get(owner, self.default)


@pytest.fixture(autouse=True)
def isolated_objecthub(monkeypatch: pytest.MonkeyPatch, request: pytest.FixtureRequest) -> None:
    """Clear in-memory stores and objecthub env vars around every test.

    Postgres integration tests keep the database URLs.
    """
    keep_db = request.node.get_closest_marker("postgres") is not None
    for name in _OBJECTHUB_ENV_VARS:
        if keep_db and name.startswith("OBJECTHUB_DATABASE"):
            continue
        monkeypatch.delenv(name, raising=False)

    objects_repo_module.clear_in_memory_store()
    subscriptions_repo_module.clear_in_memory_store()


@pytest.fixture
def token_config() -> ObjectTokenConfig:
    return ObjectTokenConfig(
        secret=TEST_TOKEN_SECRET, ttl_seconds=60, public_url=TEST_PUBLIC_URL
    )


@pytest.fixture
def storage_backend(tmp_path: Path) -> FilesystemStorageBackend:
    """Filesystem backend rooted in a per-test temp directory."""
    return FilesystemStorageBackend(base_dir=tmp_path / "blobs")


@pytest.fixture
def objects_repository() -> InMemoryObjectsRepository:
    return InMemoryObjectsRepository()


@pytest.fixture
def quota_source() -> StaticQuotaSource:
    return StaticQuotaSource()


@pytest.fixture
def object_service(
    objects_repository: InMemoryObjectsRepository,
    storage_backend: FilesystemStorageBackend,
    quota_source: StaticQuotaSource,
    token_config: ObjectTokenConfig,
) -> ObjectService:
    """ObjectService over the in-memory repository and temp backend."""
    return ObjectService(
        objects_repository,
        storage_backend,
        QuotaEngine(objects_repository, quota_source),
        AccessIssuer(token_config),
    )


@pytest.fixture
def upload(storage_backend: FilesystemStorageBackend) -> Callable[[str, bytes], None]:
    """Place bytes in the backend under a storage id, bypassing the gateway."""

    def _upload(storage_id: str, data: bytes) -> None:
        storage_backend.write(storage_id, data)

    return _upload
