"""Alembic environment for objecthub migrations.

Loaded by alembic itself. Uses the connection handed in through
``config.attributes["connection"]`` when present (see
objecthub.persistence.migrate), otherwise OBJECTHUB_DATABASE_ADMIN_URL.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from alembic import context

from objecthub.persistence.db import get_admin_engine, get_database_url

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)

target_metadata = None


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to stdout."""
    url = get_database_url(admin=True)
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against the admin engine."""
    engine = get_admin_engine()

    with engine.connect() as connection:
        run_migrations_with_connection(connection)


def run_migrations_with_connection(connection: Connection) -> None:
    """Run migrations using an existing connection."""
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    _connection = context.config.attributes.get("connection")
    if _connection is not None:
        run_migrations_with_connection(_connection)
    else:
        run_migrations_online()
