"""ObjectService - orchestrates register, fetch, update, delete and list.

Every write goes through the quota engine. Dedup decisions come from the link
resolver. Read and write grants come from the access issuer. Callers are
identified by owner; not-found and not-yours are reported the same way.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from objecthub.models.object_record import ObjectRecord
from objecthub.services.objects.access import AccessIssuer, ObjectWithAccess
from objecthub.services.objects.errors import (
    NoBackingFileError,
    NoLinkTargetError,
    ObjectAccessDeniedError,
    ObjectNotFoundError,
    ObjectValidationError,
)
from objecthub.services.objects.identity import canonical_sha, make_storage_id
from objecthub.services.objects.links import LinkResolver, ResolutionKind
from objecthub.services.objects.quota import QuotaEngine
from objecthub.services.objects.sizes import normalize_size
from objecthub.storage.backend import StorageBackend

logger = logging.getLogger(__name__)

OBJECT_TYPE_OBJECT = "object"
OBJECT_TYPE_LINK = "link"

# Wire field -> record attribute for list filters.
LIST_FILTER_FIELDS: dict[str, str] = {
    "id": "sha",
    "sha256sum": "sha",
    "storage-id": "storage_id",
    "objectname": "object_name",
    "mime-type": "mime_type",
    "size": "size",
    "sizeint": "size",
}


class RegisterOutcome(str, Enum):
    """What register did."""

    CREATED = "CREATED"
    REPAIRED = "REPAIRED"
    EXISTS = "EXISTS"
    LINKED = "LINKED"


@dataclass(frozen=True)
class RegisterResult:
    """Result of a register call.

    Attributes:
        record: The caller's record after the call.
        outcome: CREATED (new record), REPAIRED (dangling record re-affirmed),
            EXISTS (backed record, untouched) or LINKED (link record saved).
    """

    record: ObjectRecord
    outcome: RegisterOutcome

    @property
    def object_type(self) -> str:
        return object_type_of(self.record)


def object_type_of(record: ObjectRecord) -> str:
    """Return "link" for link records and "object" otherwise."""
    return OBJECT_TYPE_LINK if record.is_link else OBJECT_TYPE_OBJECT


class ObjectRepository(Protocol):
    def get(self, storage_id: str, *, include_garbage: bool = False) -> ObjectRecord | None: ...

    def find_link_candidates(self, sha: str, *, exclude_owner: str) -> list[ObjectRecord]: ...

    def list_by_owner(
        self, owner: str, filters: Mapping[str, Any] | None = None
    ) -> list[ObjectRecord]: ...

    def mark_garbage(self, storage_id: str) -> ObjectRecord | None: ...


class ObjectService:
    """Service for object record operations."""

    def __init__(
        self,
        repository: ObjectRepository,
        storage_backend: StorageBackend,
        quota_engine: QuotaEngine,
        access_issuer: AccessIssuer,
    ) -> None:
        """Initialize the service.

        Args:
            repository: Object record repository.
            storage_backend: Backend used to check for backing bytes.
            quota_engine: Gate for every record write.
            access_issuer: Signs read and write grants.
        """
        self._repository = repository
        self._quota = quota_engine
        self._access = access_issuer
        self._resolver = LinkResolver(repository, storage_backend)

    @property
    def resolver(self) -> LinkResolver:
        return self._resolver

    def register(
        self,
        owner: str,
        sha: str,
        *,
        object_name: str = "",
        size: int = 0,
        mime_type: str = "",
        auto_link: bool = True,
    ) -> RegisterResult:
        """Register a content hash for owner.

        A backed record is returned untouched. An existing link record is
        renamed to object_name. Otherwise, with auto_link on, a link to
        another owner's bytes is created when one exists. Failing all that,
        the caller's record is created (or a dangling one re-saved, keeping the
        stored name, size and MIME type where the call leaves them out) so the
        caller can upload the bytes. All writes are quota checked.

        Args:
            owner: Calling owner.
            sha: Hex content hash.
            object_name: Logical filename.
            size: Size in bytes (already normalized).
            mime_type: MIME type.
            auto_link: Allow linking to another owner's bytes.

        Returns:
            RegisterResult with the record and what happened.

        Raises:
            InvalidShaError: If sha is not a valid 32-byte hex digest.
            QuotaExceededError: If the write would exceed the owner's quota.
        """
        sha = canonical_sha(sha)
        storage_id = make_storage_id(owner, bytes.fromhex(sha))

        try:
            resolution = self._resolver.resolve_with_links(
                owner, sha, auto_link=auto_link, object_name=object_name or None
            )
        except (ObjectNotFoundError, NoBackingFileError, NoLinkTargetError):
            resolution = None

        if resolution is not None and resolution.kind == ResolutionKind.BACKED:
            logger.debug("Register found backed record: owner=%s storage_id=%s", owner, storage_id)
            return RegisterResult(resolution.record, RegisterOutcome.EXISTS)

        if resolution is not None and resolution.kind == ResolutionKind.LINK:
            renamed = resolution.record.with_changes(
                object_name=object_name or resolution.record.object_name
            )
            saved = self._quota.save(renamed)
            return RegisterResult(saved, RegisterOutcome.LINKED)

        if resolution is not None:
            saved = self._quota.save(resolution.record)
            logger.info(
                "Linked object: owner=%s storage_id=%s target=%s",
                owner,
                saved.storage_id,
                saved.linked_object,
            )
            return RegisterResult(saved, RegisterOutcome.LINKED)

        existing = self._repository.get(storage_id)
        if existing is None:
            record = ObjectRecord(
                storage_id=storage_id,
                sha=sha,
                owner=owner,
                object_name=object_name,
                size=size,
                mime_type=mime_type,
            )
        else:
            # Fields the caller left out keep their stored values.
            record = existing.with_changes(
                object_name=object_name or existing.object_name,
                size=size or existing.size,
                mime_type=mime_type or existing.mime_type,
                linked_object=None,
            )
        saved = self._quota.save(record)

        if existing is not None:
            logger.info("Repaired dangling record: owner=%s storage_id=%s", owner, storage_id)
            return RegisterResult(saved, RegisterOutcome.REPAIRED)

        logger.info("Created object record: owner=%s storage_id=%s", owner, storage_id)
        return RegisterResult(saved, RegisterOutcome.CREATED)

    def fetch(self, owner: str, sha: str) -> ObjectRecord:
        """Return the owner's live record for sha.

        Read-only: a record whose bytes were never uploaded is returned as-is.

        Raises:
            InvalidShaError: If sha is not a valid 32-byte hex digest.
            ObjectAccessDeniedError: If there is no live record for owner.
        """
        return self._load_owned(owner, canonical_sha(sha))

    def update(
        self,
        owner: str,
        sha: str,
        *,
        object_name: str | None = None,
        size: int | None = None,
        mime_type: str | None = None,
        claimed_owner: str | None = None,
        claimed_sha: str | None = None,
        auto_link: bool = True,
    ) -> ObjectRecord:
        """Update mutable fields of the owner's record for sha.

        A record without bytes is first offered a link to another owner's
        bytes when auto_link is on. Size and MIME type belong to the linked
        content and cannot be changed on a link record.

        Args:
            owner: Calling owner.
            sha: Hex content hash from the path.
            object_name: New logical filename; empty or None keeps the old one.
            size: New size in bytes, or None to keep.
            mime_type: New MIME type, or None to keep.
            claimed_owner: Owner field from the payload, if sent.
            claimed_sha: Hash field from the payload, if sent.
            auto_link: Allow linking a record that has no bytes.

        Raises:
            InvalidShaError: If sha is not a valid 32-byte hex digest.
            ObjectAccessDeniedError: If owner has no live record for sha.
            ObjectValidationError: If the payload tries to change owner, sha,
                or a link's size or MIME type.
            QuotaExceededError: If the new size would exceed the quota.
        """
        sha = canonical_sha(sha)

        if claimed_sha and claimed_sha.lower() != sha:
            raise ObjectValidationError("Cannot modify object sha", owner=owner, sha=sha)

        try:
            record = self._resolver.resolve_with_links(owner, sha, auto_link=auto_link).record
        except (ObjectNotFoundError, NoBackingFileError, NoLinkTargetError):
            record = self._load_owned(owner, sha)

        if record.owner != owner:
            raise ObjectAccessDeniedError(owner=owner, sha=sha)

        if claimed_owner and claimed_owner != record.owner:
            raise ObjectValidationError("Cannot modify object owner", owner=owner, sha=sha)

        changes: dict[str, Any] = {}
        if object_name:
            changes["object_name"] = object_name
        if size is not None and size != record.size:
            if record.is_link:
                raise ObjectValidationError("Cannot modify size of a link", owner=owner, sha=sha)
            changes["size"] = size
        if mime_type is not None and mime_type != record.mime_type:
            if record.is_link:
                raise ObjectValidationError(
                    "Cannot modify mime-type of a link", owner=owner, sha=sha
                )
            changes["mime_type"] = mime_type

        return self._quota.save(record.with_changes(**changes))

    def delete(self, owner: str, sha: str) -> ObjectRecord:
        """Soft-delete the owner's record for sha.

        The bytes stay in the backend for an external collector. Registering
        the same hash again resurrects the record under the same storage id.

        Raises:
            InvalidShaError: If sha is not a valid 32-byte hex digest.
            ObjectAccessDeniedError: If owner has no live record for sha.
        """
        sha = canonical_sha(sha)
        record = self._load_owned(owner, sha)

        deleted = self._repository.mark_garbage(record.storage_id)
        if deleted is None:
            raise ObjectAccessDeniedError(owner=owner, sha=sha)

        logger.info("Marked object as garbage: owner=%s storage_id=%s", owner, record.storage_id)
        return deleted

    def list(self, owner: str, filters: Mapping[str, Any] | None = None) -> list[ObjectRecord]:
        """List the owner's live records.

        Args:
            owner: Calling owner.
            filters: Equality filters keyed by wire field name (id, sha256sum,
                storage-id, objectname, mime-type, size, sizeint).

        Raises:
            ObjectValidationError: If a filter field is unknown or a value
                has the wrong type.
        """
        attributes: dict[str, Any] = {}
        for field_name, raw in (filters or {}).items():
            attribute = LIST_FILTER_FIELDS.get(field_name)
            if attribute is None:
                raise ObjectValidationError(f"Unsupported filter field: {field_name}", owner=owner)

            value = _filter_value(attribute, raw)
            if attribute in attributes and attributes[attribute] != value:
                return []
            attributes[attribute] = value

        return self._repository.list_by_owner(owner, attributes)

    def grant(self, record: ObjectRecord, subject: str) -> ObjectWithAccess:
        """Attach signed read/write URLs for subject to a record."""
        return self._access.make_accessible(record, subject)

    def _load_owned(self, owner: str, sha: str) -> ObjectRecord:
        record = self._repository.get(make_storage_id(owner, bytes.fromhex(sha)))
        if record is None or record.owner != owner:
            raise ObjectAccessDeniedError(owner=owner, sha=sha)
        return record


def _filter_value(attribute: str, raw: Any) -> Any:
    if isinstance(raw, bool) or not isinstance(raw, (str, int)):
        raise ObjectValidationError(f"Filter value for {attribute} must be a string or integer")
    if attribute == "size":
        if isinstance(raw, int):
            return normalize_size(None, raw)
        return normalize_size(raw, None)
    if attribute == "sha":
        return str(raw).lower()
    return str(raw)
