"""Cross-owner dedup through link records.

When an owner registers a hash whose bytes another owner already uploaded,
the owner gets a link record pointing at that owner's record instead of
uploading the bytes again. The resolver only proposes links; persisting one
goes through the quota gate in the object service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from objecthub.models.object_record import ObjectRecord
from objecthub.services.objects.errors import (
    NoBackingFileError,
    NoLinkTargetError,
    ObjectNotFoundError,
)
from objecthub.services.objects.identity import canonical_sha, make_storage_id
from objecthub.storage.backend import StorageBackend

logger = logging.getLogger(__name__)

LINK_NAME_PREFIX = "/na/link-for-"


class ResolutionKind(str, Enum):
    """How a record was resolved."""

    BACKED = "BACKED"
    LINK = "LINK"
    NEW_LINK = "NEW_LINK"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving an owner's record for a hash.

    Attributes:
        record: The resolved record. For NEW_LINK it is not yet persisted.
        kind: BACKED (own bytes exist), LINK (stored link record) or
            NEW_LINK (proposed link to another owner's bytes).
    """

    record: ObjectRecord
    kind: ResolutionKind


class RecordLookup(Protocol):
    def get(self, storage_id: str, *, include_garbage: bool = False) -> ObjectRecord | None: ...

    def find_link_candidates(self, sha: str, *, exclude_owner: str) -> list[ObjectRecord]: ...


class LinkResolver:
    """Resolves an owner's record for a hash, proposing links when useful."""

    def __init__(self, repository: RecordLookup, storage_backend: StorageBackend) -> None:
        self._repository = repository
        self._storage = storage_backend

    def resolve_with_backing(self, owner: str, sha: str) -> Resolution:
        """Resolve the owner's own live record for sha.

        Args:
            owner: Owner whose record to resolve.
            sha: Hex content hash.

        Returns:
            Resolution of kind BACKED or LINK.

        Raises:
            InvalidShaError: If sha is not a valid 32-byte hex digest.
            ObjectNotFoundError: If the owner has no live record.
            NoBackingFileError: If the record owns content but no bytes exist.
        """
        sha = canonical_sha(sha)
        storage_id = make_storage_id(owner, bytes.fromhex(sha))

        record = self._repository.get(storage_id)
        if record is None:
            raise ObjectNotFoundError(owner=owner, sha=sha)

        if record.is_link:
            return Resolution(record, ResolutionKind.LINK)

        if not self._storage.exists(storage_id):
            raise NoBackingFileError(owner=owner, sha=sha, storage_id=storage_id)

        return Resolution(record, ResolutionKind.BACKED)

    def resolve_with_links(
        self,
        owner: str,
        sha: str,
        *,
        auto_link: bool = True,
        object_name: str | None = None,
    ) -> Resolution:
        """Resolve the owner's record, falling back to a proposed link.

        Args:
            owner: Owner whose record to resolve.
            sha: Hex content hash.
            auto_link: Propose a link to another owner's bytes when the
                owner has no backed record.
            object_name: Name for a proposed link. Defaults to the existing
                record's name, then to a generated placeholder.

        Returns:
            Resolution of kind BACKED, LINK or NEW_LINK.

        Raises:
            InvalidShaError: If sha is not a valid 32-byte hex digest.
            ObjectNotFoundError: If auto_link is off and there is no record.
            NoBackingFileError: If auto_link is off and the record has no bytes.
            NoLinkTargetError: If auto_link is on and no other owner has
                backed bytes for sha.
        """
        sha = canonical_sha(sha)

        try:
            return self.resolve_with_backing(owner, sha)
        except (ObjectNotFoundError, NoBackingFileError):
            if not auto_link:
                raise

        target = self.find_link_target(owner, sha)
        if target is None:
            raise NoLinkTargetError(owner=owner, sha=sha)

        storage_id = make_storage_id(owner, bytes.fromhex(sha))
        existing = self._repository.get(storage_id)

        name = object_name or (existing.object_name if existing is not None else "")
        if not name:
            name = f"{LINK_NAME_PREFIX}{sha}"

        proposed = ObjectRecord(
            storage_id=storage_id,
            sha=sha,
            owner=owner,
            object_name=name,
            size=target.size,
            mime_type=target.mime_type,
            linked_object=target.storage_id,
            time_created=existing.time_created if existing is not None else None,
        )

        logger.debug(
            "Proposed link: owner=%s storage_id=%s target=%s",
            owner,
            storage_id,
            target.storage_id,
        )
        return Resolution(proposed, ResolutionKind.NEW_LINK)

    def find_link_target(self, owner: str, sha: str) -> ObjectRecord | None:
        """Pick the oldest other-owner record for sha whose bytes exist.

        Candidates without bytes in the backend are skipped, so a link never
        points at a dangling record.
        """
        for candidate in self._repository.find_link_candidates(sha, exclude_owner=owner):
            if self._storage.exists(candidate.storage_id):
                return candidate
        return None
