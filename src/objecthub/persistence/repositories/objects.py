"""Object record repositories.

Provides the Postgres-backed repository and an in-memory fallback with the
same surface. Both expose ``save_within_quota``, which aggregates the owner's
usage, compares it against the limit and upserts the record as one atomic
step, so two concurrent writers for the same owner cannot both slip under
the quota.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import text

from objecthub.models.object_record import ObjectRecord
from objecthub.persistence.db import get_app_engine, is_postgres_configured, translate_db_errors

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

logger = logging.getLogger(__name__)

# Record attribute -> column for list filters.
FILTER_COLUMNS: dict[str, str] = {
    "sha": "sha256",
    "storage_id": "storage_id",
    "object_name": "object_name",
    "mime_type": "mime_type",
    "size": "size_int",
}

_SELECT_COLUMNS = """
    storage_id, sha256, owner, object_name, size, size_int, mime_type,
    linked_object, garbage, time_created, time_modified
"""


class UsageLimitExceededError(Exception):
    """Raised when saving a record would push owner usage over the limit."""

    def __init__(self, owner: str, usage: int, limit: int) -> None:
        self.owner = owner
        self.usage = usage
        self.limit = limit
        super().__init__(f"Usage {usage} exceeds limit {limit} for owner {owner}")


def _check_filters(filters: Mapping[str, Any] | None) -> dict[str, Any]:
    """Validate filter keys against the supported record attributes."""
    if not filters:
        return {}
    unknown = sorted(set(filters) - set(FILTER_COLUMNS))
    if unknown:
        raise ValueError(f"Unsupported filter fields: {', '.join(unknown)}")
    return dict(filters)


class ObjectsRepository:
    """Postgres repository for object records.

    Each call runs in its own transaction on the given engine.
    """

    def __init__(self, engine: Engine) -> None:
        """Initialize repository with an engine.

        Args:
            engine: SQLAlchemy engine for the application role.
        """
        self._engine = engine

    def get(self, storage_id: str, *, include_garbage: bool = False) -> ObjectRecord | None:
        """Get a record by storage id.

        Args:
            storage_id: Owner-scoped storage id.
            include_garbage: Also return soft-deleted records.

        Returns:
            The record, or None if absent (or garbage and not requested).
        """
        query = f"SELECT {_SELECT_COLUMNS} FROM objects WHERE storage_id = :storage_id"
        if not include_garbage:
            query += " AND garbage = false"

        with translate_db_errors("get"), self._engine.begin() as conn:
            row = conn.execute(text(query), {"storage_id": storage_id}).fetchone()

        if row is None:
            return None
        return self._row_to_record(row)

    def find_link_candidates(self, sha: str, *, exclude_owner: str) -> list[ObjectRecord]:
        """Find other owners' live content-owning records for a hash.

        Ordered oldest first, then by storage id, so dedup always picks the
        same target for the same state.
        """
        with translate_db_errors("find_link_candidates"), self._engine.begin() as conn:
            rows = conn.execute(
                text(
                    f"""
                    SELECT {_SELECT_COLUMNS}
                    FROM objects
                    WHERE sha256 = :sha
                      AND owner <> :owner
                      AND garbage = false
                      AND linked_object IS NULL
                    ORDER BY time_created, storage_id
                    """
                ),
                {"sha": sha, "owner": exclude_owner},
            ).fetchall()

        return [self._row_to_record(row) for row in rows]

    def list_by_owner(
        self, owner: str, filters: Mapping[str, Any] | None = None
    ) -> list[ObjectRecord]:
        """List the owner's live records, optionally narrowed by equality filters.

        Args:
            owner: Owner whose records to list.
            filters: Mapping of record attribute to required value. Keys must
                be in FILTER_COLUMNS.

        Raises:
            ValueError: If a filter key is not supported.
        """
        checked = _check_filters(filters)

        clauses = ["owner = :owner", "garbage = false"]
        params: dict[str, Any] = {"owner": owner}
        for index, (attribute, value) in enumerate(sorted(checked.items())):
            param = f"f{index}"
            clauses.append(f"{FILTER_COLUMNS[attribute]} = :{param}")
            params[param] = value

        query = (
            f"SELECT {_SELECT_COLUMNS} FROM objects WHERE "
            + " AND ".join(clauses)
            + " ORDER BY time_created, storage_id"
        )

        with translate_db_errors("list_by_owner"), self._engine.begin() as conn:
            rows = conn.execute(text(query), params).fetchall()

        return [self._row_to_record(row) for row in rows]

    def usage(self, owner: str, *, excluding_storage_id: str | None = None) -> int:
        """Sum the sizes of the owner's live records.

        Args:
            owner: Owner whose usage to compute.
            excluding_storage_id: Record to leave out of the sum.
        """
        with translate_db_errors("usage"), self._engine.begin() as conn:
            return self._usage(conn, owner, excluding_storage_id)

    def save_within_quota(self, record: ObjectRecord, limit: int) -> ObjectRecord:
        """Upsert a record if the owner stays within limit.

        Takes a transaction-scoped advisory lock on the owner so concurrent
        writers for the same owner serialize on the usage check. The record's
        own previous size is excluded from the sum before its new size is
        added.

        Args:
            record: Record to upsert, keyed by storage id.
            limit: Maximum total bytes for the owner.

        Returns:
            The stored record with timestamps filled in.

        Raises:
            UsageLimitExceededError: If usage after the write exceeds limit.
                Nothing is written in that case.
        """
        now = datetime.now(UTC)

        with translate_db_errors("save_within_quota"), self._engine.begin() as conn:
            conn.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:owner))"),
                {"owner": record.owner},
            )

            usage = self._usage(conn, record.owner, record.storage_id) + record.size
            if usage > limit:
                raise UsageLimitExceededError(record.owner, usage, limit)

            row = conn.execute(
                text(
                    f"""
                    INSERT INTO objects (
                        storage_id, sha256, owner, object_name, size, size_int,
                        mime_type, linked_object, garbage, time_created, time_modified
                    ) VALUES (
                        :storage_id, :sha256, :owner, :object_name, :size, :size_int,
                        :mime_type, :linked_object, false, :now, :now
                    )
                    ON CONFLICT (storage_id) DO UPDATE SET
                        object_name = EXCLUDED.object_name,
                        size = EXCLUDED.size,
                        size_int = EXCLUDED.size_int,
                        mime_type = EXCLUDED.mime_type,
                        linked_object = EXCLUDED.linked_object,
                        garbage = false,
                        time_modified = EXCLUDED.time_modified
                    RETURNING {_SELECT_COLUMNS}
                    """
                ),
                {
                    "storage_id": record.storage_id,
                    "sha256": record.sha,
                    "owner": record.owner,
                    "object_name": record.object_name,
                    "size": record.size_str,
                    "size_int": record.size,
                    "mime_type": record.mime_type,
                    "linked_object": record.linked_object,
                    "now": now,
                },
            ).fetchone()

        return self._row_to_record(row)

    def mark_garbage(self, storage_id: str) -> ObjectRecord | None:
        """Soft-delete a record.

        Returns:
            The updated record, or None if no live record matched.
        """
        with translate_db_errors("mark_garbage"), self._engine.begin() as conn:
            row = conn.execute(
                text(
                    f"""
                    UPDATE objects
                    SET garbage = true, time_modified = :now
                    WHERE storage_id = :storage_id AND garbage = false
                    RETURNING {_SELECT_COLUMNS}
                    """
                ),
                {"storage_id": storage_id, "now": datetime.now(UTC)},
            ).fetchone()

        if row is None:
            return None
        return self._row_to_record(row)

    def _usage(self, conn: Connection, owner: str, excluding_storage_id: str | None) -> int:
        result = conn.execute(
            text(
                """
                SELECT COALESCE(SUM(size_int), 0) AS total
                FROM objects
                WHERE owner = :owner
                  AND garbage = false
                  AND storage_id <> :excluded
                """
            ),
            {"owner": owner, "excluded": excluding_storage_id or ""},
        ).fetchone()
        return int(result.total) if result is not None else 0

    def _row_to_record(self, row: Any) -> ObjectRecord:
        """Convert database row to ObjectRecord."""
        return ObjectRecord(
            storage_id=row.storage_id,
            sha=row.sha256,
            owner=row.owner,
            object_name=row.object_name,
            size=int(row.size_int),
            mime_type=row.mime_type,
            linked_object=row.linked_object,
            garbage=bool(row.garbage),
            time_created=row.time_created,
            time_modified=row.time_modified,
        )


_in_memory_store: dict[str, ObjectRecord] = {}
_in_memory_lock = threading.Lock()


class InMemoryObjectsRepository:
    """In-memory fallback repository for when Postgres is not configured.

    A single module-level lock stands in for the advisory lock, so the
    usage check and upsert in save_within_quota are atomic here as well.
    """

    def get(self, storage_id: str, *, include_garbage: bool = False) -> ObjectRecord | None:
        """Get a record by storage id from memory."""
        record = _in_memory_store.get(storage_id)
        if record is None or (record.garbage and not include_garbage):
            return None
        return record

    def find_link_candidates(self, sha: str, *, exclude_owner: str) -> list[ObjectRecord]:
        """Find other owners' live content-owning records for a hash."""
        candidates = [
            r
            for r in list(_in_memory_store.values())
            if r.sha == sha and r.owner != exclude_owner and not r.garbage and not r.is_link
        ]
        return sorted(candidates, key=_creation_order)

    def list_by_owner(
        self, owner: str, filters: Mapping[str, Any] | None = None
    ) -> list[ObjectRecord]:
        """List the owner's live records from memory."""
        checked = _check_filters(filters)
        records = [
            r
            for r in list(_in_memory_store.values())
            if r.owner == owner
            and not r.garbage
            and all(getattr(r, attribute) == value for attribute, value in checked.items())
        ]
        return sorted(records, key=_creation_order)

    def usage(self, owner: str, *, excluding_storage_id: str | None = None) -> int:
        """Sum the sizes of the owner's live records in memory."""
        return sum(
            r.size
            for r in list(_in_memory_store.values())
            if r.owner == owner and not r.garbage and r.storage_id != excluding_storage_id
        )

    def save_within_quota(self, record: ObjectRecord, limit: int) -> ObjectRecord:
        """Upsert a record in memory if the owner stays within limit."""
        with _in_memory_lock:
            usage = self.usage(record.owner, excluding_storage_id=record.storage_id)
            usage += record.size
            if usage > limit:
                raise UsageLimitExceededError(record.owner, usage, limit)

            now = datetime.now(UTC)
            existing = _in_memory_store.get(record.storage_id)
            time_created = existing.time_created if existing is not None else now

            stored = record.with_changes(
                garbage=False,
                time_created=time_created,
                time_modified=now,
            )
            _in_memory_store[record.storage_id] = stored
            return stored

    def mark_garbage(self, storage_id: str) -> ObjectRecord | None:
        """Soft-delete a record in memory."""
        with _in_memory_lock:
            record = _in_memory_store.get(storage_id)
            if record is None or record.garbage:
                return None
            updated = record.with_changes(garbage=True, time_modified=datetime.now(UTC))
            _in_memory_store[storage_id] = updated
            return updated


def _creation_order(record: ObjectRecord) -> tuple[datetime, str]:
    created = record.time_created or datetime.min.replace(tzinfo=UTC)
    return created, record.storage_id


def clear_in_memory_store() -> None:
    """Clear the in-memory store. For testing only."""
    with _in_memory_lock:
        _in_memory_store.clear()


def get_objects_repository(
    engine: Engine | None = None,
) -> ObjectsRepository | InMemoryObjectsRepository:
    """Factory to get the appropriate objects repository.

    Returns the Postgres repository when an engine is given or Postgres is
    configured, otherwise the in-memory fallback.
    """
    if engine is not None:
        return ObjectsRepository(engine)
    if is_postgres_configured():
        return ObjectsRepository(get_app_engine())
    return InMemoryObjectsRepository()
