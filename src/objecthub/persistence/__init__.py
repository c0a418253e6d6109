"""objecthub persistence.

Provides PostgreSQL connectivity, repositories with in-memory fallbacks, and
migration support.
"""

from objecthub.persistence.db import (
    DatabaseConfigError,
    MetadataStoreError,
    get_admin_engine,
    get_app_engine,
    get_database_url,
    is_postgres_configured,
    reset_engines,
)

__all__ = [
    "DatabaseConfigError",
    "MetadataStoreError",
    "get_admin_engine",
    "get_app_engine",
    "get_database_url",
    "is_postgres_configured",
    "reset_engines",
]
