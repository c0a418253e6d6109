"""Quota engine.

Usage is always a fresh aggregation over the owner's live records, never a
cached counter. The record being written is excluded from the sum and its
new size added, so re-saving a record at the same or a smaller size never
trips the quota and a duplicate register does not count twice.
"""

from __future__ import annotations

import logging
from typing import Protocol

from objecthub.models.object_record import ObjectRecord
from objecthub.persistence.repositories.objects import UsageLimitExceededError
from objecthub.services.objects.errors import QuotaExceededError

logger = logging.getLogger(__name__)


class QuotaSource(Protocol):
    """Anything that knows an owner's quota in bytes."""

    def quota_for(self, owner: str) -> int: ...


class UsageRepository(Protocol):
    def usage(self, owner: str, *, excluding_storage_id: str | None = None) -> int: ...

    def save_within_quota(self, record: ObjectRecord, limit: int) -> ObjectRecord: ...


class QuotaEngine:
    """Computes usage and gates record writes against the owner's quota."""

    def __init__(self, repository: UsageRepository, quota_source: QuotaSource) -> None:
        self._repository = repository
        self._quota_source = quota_source

    def usage_after_write(
        self,
        owner: str,
        new_size: int,
        excluding_storage_id: str | None = None,
    ) -> int:
        """Return the owner's usage if a record of new_size were written.

        Args:
            owner: Owner whose usage to compute.
            new_size: Size of the record about to be written.
            excluding_storage_id: Storage id whose current size is replaced
                by new_size (the record being written).
        """
        return (
            self._repository.usage(owner, excluding_storage_id=excluding_storage_id) + new_size
        )

    def quota(self, owner: str) -> int:
        """Return the owner's quota in bytes."""
        return self._quota_source.quota_for(owner)

    def check(
        self,
        owner: str,
        new_size: int,
        excluding_storage_id: str | None = None,
    ) -> int:
        """Check a prospective write without performing it.

        Returns:
            Usage after the write.

        Raises:
            QuotaExceededError: If usage after the write exceeds the quota.
        """
        quota = self.quota(owner)
        usage = self.usage_after_write(owner, new_size, excluding_storage_id)
        if usage > quota:
            raise QuotaExceededError(owner, usage, quota)
        return usage

    def save(self, record: ObjectRecord) -> ObjectRecord:
        """Persist a record if the owner stays within quota.

        The usage check and the upsert run atomically in the repository.

        Raises:
            QuotaExceededError: If the write would exceed the quota. Nothing
                is written.
            QuotaSourceError: If the quota cannot be determined.
            MetadataStoreError: If the metadata store fails.
        """
        quota = self.quota(record.owner)
        try:
            return self._repository.save_within_quota(record, quota)
        except UsageLimitExceededError as e:
            logger.info(
                "Quota exceeded: owner=%s usage=%d quota=%d storage_id=%s",
                record.owner,
                e.usage,
                e.limit,
                record.storage_id,
            )
            raise QuotaExceededError(record.owner, e.usage, e.limit) from None
