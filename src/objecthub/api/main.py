"""objecthub FastAPI application factory.

Run with:
    uvicorn objecthub.api.main:create_app --factory --port 12365
"""

from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from objecthub import __version__
from objecthub.api.errors import (
    ObjectHubHttpError,
    domain_error_handler,
    generic_exception_handler,
    http_exception_handler,
    objecthub_http_error_handler,
    request_validation_error_handler,
)
from objecthub.api.middleware.request_context import RequestContextMiddleware
from objecthub.api.routes.health import router as health_router
from objecthub.api.routes.local_s3 import router as local_s3_router
from objecthub.api.routes.objects import router as objects_router
from objecthub.observability.tracing import configure_tracing
from objecthub.persistence.db import MetadataStoreError
from objecthub.persistence.repositories.objects import get_objects_repository
from objecthub.persistence.repositories.subscriptions import get_subscriptions_repository
from objecthub.services.objects.access import AccessIssuer
from objecthub.services.objects.errors import ObjectServiceError
from objecthub.services.objects.quota import QuotaEngine, QuotaSource
from objecthub.services.objects.service import ObjectRepository, ObjectService
from objecthub.services.objects.tokens import ObjectTokenConfig, load_token_config
from objecthub.services.subscriptions.quota_source import (
    SubscriptionQuotaSource,
    load_quota_config,
)
from objecthub.storage.backend import StorageBackend
from objecthub.storage.errors import ObjectStorageError
from objecthub.storage.filesystem_store import FilesystemStorageBackend


def create_app(
    object_service: ObjectService | None = None,
    storage_backend: StorageBackend | None = None,
    token_config: ObjectTokenConfig | None = None,
    objects_repository: ObjectRepository | None = None,
    quota_source: QuotaSource | None = None,
) -> FastAPI:
    """Create and configure the objecthub FastAPI application.

    Collaborators not passed in are built from the environment: the
    Postgres repositories when OBJECTHUB_DATABASE_URL is set (in-memory
    otherwise), the filesystem storage backend, the plan-based quota source
    and the token configuration.

    Args:
        object_service: Fully built service. When given, the repository and
            quota source arguments are ignored.
        storage_backend: Backend holding object bytes (also served by the
            local gateway).
        token_config: Signing configuration shared by issuer and gateway.
        objects_repository: Object record repository.
        quota_source: Quota lookup per owner.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="objecthub API",
        description="Content-addressed object store control plane",
        version=__version__,
    )

    configure_tracing()

    storage_backend = storage_backend or FilesystemStorageBackend()
    token_config = token_config or load_token_config()

    if object_service is None:
        repository = objects_repository or get_objects_repository()
        if quota_source is None:
            quota_source = SubscriptionQuotaSource(
                get_subscriptions_repository(),
                load_quota_config().default_plan,
            )
        object_service = ObjectService(
            repository,
            storage_backend,
            QuotaEngine(repository, quota_source),
            AccessIssuer(token_config),
        )

    app.state.object_service = object_service
    app.state.storage_backend = storage_backend
    app.state.token_config = token_config

    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(ObjectHubHttpError, objecthub_http_error_handler)
    app.add_exception_handler(ObjectServiceError, domain_error_handler)
    app.add_exception_handler(ObjectStorageError, domain_error_handler)
    app.add_exception_handler(MetadataStoreError, domain_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(objects_router)
    app.include_router(local_s3_router)

    return app
