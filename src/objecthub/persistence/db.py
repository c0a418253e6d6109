"""PostgreSQL connectivity for the objecthub metadata store.

Environment Variables:
    OBJECTHUB_DATABASE_URL: Application role connection string
    OBJECTHUB_DATABASE_ADMIN_URL: Admin connection string (migrations/tests only)
    OBJECTHUB_DB_STATEMENT_TIMEOUT_MS: Per-statement timeout (default: 5000)

When OBJECTHUB_DATABASE_URL is unset, repositories fall back to in-memory
implementations.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

OBJECTHUB_DATABASE_URL_ENV = "OBJECTHUB_DATABASE_URL"
OBJECTHUB_DATABASE_ADMIN_URL_ENV = "OBJECTHUB_DATABASE_ADMIN_URL"
OBJECTHUB_DB_STATEMENT_TIMEOUT_MS_ENV = "OBJECTHUB_DB_STATEMENT_TIMEOUT_MS"

DEFAULT_STATEMENT_TIMEOUT_MS = 5000

_app_engine: Engine | None = None
_admin_engine: Engine | None = None


class DatabaseConfigError(Exception):
    """Raised when database configuration is missing or invalid."""

    pass


class MetadataStoreError(Exception):
    """Raised when the metadata store fails or times out.

    Attributes:
        message: Human-readable error message.
        operation: Repository operation that failed.
        cause: Underlying driver exception.
    """

    def __init__(
        self,
        message: str = "Metadata store unavailable",
        *,
        operation: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.cause = cause


@contextmanager
def translate_db_errors(operation: str) -> Generator[None, None, None]:
    """Re-raise SQLAlchemy failures inside the block as MetadataStoreError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Metadata store operation %s failed: %s", operation, type(e).__name__)
        raise MetadataStoreError(
            f"Metadata store operation failed: {operation}",
            operation=operation,
            cause=e,
        ) from e


def is_postgres_configured() -> bool:
    """Check if PostgreSQL is configured via environment."""
    return bool(os.environ.get(OBJECTHUB_DATABASE_URL_ENV))


def _ensure_psycopg_driver(url: str) -> str:
    """Normalize legacy postgres:// URLs to the psycopg2 dialect name."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def get_database_url(admin: bool = False) -> str:
    """Get the database URL from environment.

    Args:
        admin: If True, return admin URL; otherwise return app URL.

    Returns:
        Database connection string.

    Raises:
        DatabaseConfigError: If the required environment variable is not set.
    """
    env_var = OBJECTHUB_DATABASE_ADMIN_URL_ENV if admin else OBJECTHUB_DATABASE_URL_ENV
    url = os.environ.get(env_var)

    if not url:
        raise DatabaseConfigError(
            f"Database URL not configured. Set {env_var} environment variable."
        )

    return _ensure_psycopg_driver(url)


def get_statement_timeout_ms() -> int:
    """Get the per-statement timeout in milliseconds.

    Raises:
        DatabaseConfigError: If the configured value is not a positive integer.
    """
    raw = os.environ.get(OBJECTHUB_DB_STATEMENT_TIMEOUT_MS_ENV)
    if not raw:
        return DEFAULT_STATEMENT_TIMEOUT_MS
    try:
        value = int(raw)
    except ValueError as e:
        raise DatabaseConfigError(
            f"{OBJECTHUB_DB_STATEMENT_TIMEOUT_MS_ENV} must be an integer, got {raw!r}"
        ) from e
    if value <= 0:
        raise DatabaseConfigError(f"{OBJECTHUB_DB_STATEMENT_TIMEOUT_MS_ENV} must be positive")
    return value


def get_app_engine() -> Engine:
    """Get or create the application database engine.

    Every connection carries a server-side statement timeout so a stuck
    metadata store surfaces as an error instead of a hung request.

    Raises:
        DatabaseConfigError: If OBJECTHUB_DATABASE_URL is not set.
    """
    global _app_engine

    if _app_engine is None:
        url = get_database_url(admin=False)
        timeout_ms = get_statement_timeout_ms()
        _app_engine = create_engine(
            url,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            echo=False,
            connect_args={"options": f"-c statement_timeout={timeout_ms}"},
        )
        logger.info("Created application database engine (statement_timeout=%dms)", timeout_ms)

    return _app_engine


def get_admin_engine() -> Engine:
    """Get or create the admin database engine.

    Raises:
        DatabaseConfigError: If OBJECTHUB_DATABASE_ADMIN_URL is not set.
    """
    global _admin_engine

    if _admin_engine is None:
        url = get_database_url(admin=True)
        _admin_engine = create_engine(
            url,
            pool_size=2,
            max_overflow=5,
            pool_pre_ping=True,
            echo=False,
        )
        logger.info("Created admin database engine")

    return _admin_engine


def reset_engines() -> None:
    """Dispose global engine instances. Used by tests."""
    global _app_engine, _admin_engine
    if _app_engine is not None:
        _app_engine.dispose()
        _app_engine = None
    if _admin_engine is not None:
        _admin_engine.dispose()
        _admin_engine = None
