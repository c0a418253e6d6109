"""Objects foundation: objects and subscriptions tables.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates:
- objects: one row per (owner, storage_id); links point at another row
- subscriptions: read-only plan lookup by subject
"""

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Apply migration: create objects and subscriptions tables."""

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS objects (
            storage_id TEXT PRIMARY KEY,
            sha256 TEXT NOT NULL,
            owner TEXT NOT NULL,
            object_name TEXT NOT NULL DEFAULT '',
            size TEXT NOT NULL DEFAULT '0',
            size_int BIGINT NOT NULL DEFAULT 0 CHECK (size_int >= 0),
            mime_type TEXT NOT NULL DEFAULT '',
            linked_object TEXT NULL,
            garbage BOOLEAN NOT NULL DEFAULT false,
            time_created TIMESTAMPTZ NOT NULL,
            time_modified TIMESTAMPTZ NOT NULL
        )
        """
    )

    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_objects_owner_garbage
        ON objects (owner, garbage)
        """
    )

    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_objects_sha256
        ON objects (sha256)
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS subscriptions (
            subject TEXT PRIMARY KEY,
            plan TEXT NOT NULL,
            attrs JSONB NOT NULL DEFAULT '{}'::jsonb
        )
        """
    )


def downgrade() -> None:
    """Revert migration: drop tables."""
    op.execute("DROP TABLE IF EXISTS subscriptions")
    op.execute("DROP INDEX IF EXISTS ix_objects_sha256")
    op.execute("DROP INDEX IF EXISTS ix_objects_owner_garbage")
    op.execute("DROP TABLE IF EXISTS objects")
