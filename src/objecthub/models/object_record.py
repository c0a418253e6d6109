"""Object record model.

One record exists per (owner, storage_id). A record either owns its bytes in
the storage backend or is a link that points at another owner's record with
the same content hash.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ObjectRecord:
    """Metadata for one owner's view of a content-addressed blob.

    Attributes:
        storage_id: Owner-scoped storage identity derived from owner and sha.
        sha: Lowercase hex SHA-256 of the object bytes.
        owner: Principal that owns the record.
        object_name: Mutable logical filename.
        size: Size in bytes. Serialized as both ``size`` and ``sizeint``.
        mime_type: MIME type of the content.
        linked_object: Storage id of the target record for links, else None.
        garbage: Soft-delete marker.
        time_created: When the record was first saved.
        time_modified: When the record was last saved.
    """

    storage_id: str
    sha: str
    owner: str
    object_name: str = ""
    size: int = 0
    mime_type: str = ""
    linked_object: str | None = None
    garbage: bool = False
    time_created: datetime | None = None
    time_modified: datetime | None = None

    @property
    def is_link(self) -> bool:
        """True if this record borrows its bytes from another record."""
        return bool(self.linked_object)

    @property
    def size_str(self) -> str:
        """Decimal string form of the size, as carried on the wire."""
        return str(self.size)

    @property
    def real_storage_id(self) -> str:
        """Storage id that actually holds the bytes."""
        if self.linked_object:
            return self.linked_object
        return self.storage_id

    def with_changes(self, **changes: Any) -> ObjectRecord:
        """Return a copy of the record with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        return {
            "id": self.sha,
            "storage-id": self.storage_id,
            "owner": self.owner,
            "objectname": self.object_name,
            "sha256sum": self.sha,
            "size": self.size_str,
            "sizeint": self.size,
            "mime-type": self.mime_type,
            "garbage": self.garbage,
            "time-created": _format_time(self.time_created),
            "time-modified": _format_time(self.time_modified),
        }


def _format_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")
