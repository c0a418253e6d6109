"""Tests for record resolution and cross-owner link proposals."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from objecthub.models.object_record import ObjectRecord
from objecthub.services.objects.errors import (
    NoBackingFileError,
    NoLinkTargetError,
    ObjectNotFoundError,
)
from objecthub.services.objects.identity import storage_id_for
from objecthub.services.objects.links import LINK_NAME_PREFIX, LinkResolver, ResolutionKind
from objecthub.storage.filesystem_store import FilesystemStorageBackend

SHA = "ab" * 32
T0 = datetime(2024, 1, 1, tzinfo=UTC)


class FakeRecords:
    """Record lookup with explicit creation times."""

    def __init__(self) -> None:
        self.records: dict[str, ObjectRecord] = {}

    def add(self, owner: str, **fields: object) -> ObjectRecord:
        record = ObjectRecord(
            storage_id=storage_id_for(owner, SHA), sha=SHA, owner=owner, **fields
        )
        self.records[record.storage_id] = record
        return record

    def get(self, storage_id: str, *, include_garbage: bool = False) -> ObjectRecord | None:
        record = self.records.get(storage_id)
        if record is None or (record.garbage and not include_garbage):
            return None
        return record

    def find_link_candidates(self, sha: str, *, exclude_owner: str) -> list[ObjectRecord]:
        candidates = [
            r
            for r in self.records.values()
            if r.sha == sha and r.owner != exclude_owner and not r.garbage and not r.is_link
        ]
        return sorted(candidates, key=lambda r: (r.time_created or T0, r.storage_id))


@pytest.fixture
def records() -> FakeRecords:
    return FakeRecords()


@pytest.fixture
def resolver(records: FakeRecords, storage_backend: FilesystemStorageBackend) -> LinkResolver:
    return LinkResolver(records, storage_backend)


class TestResolveWithBacking:
    def test_missing_record_not_found(self, resolver: LinkResolver) -> None:
        with pytest.raises(ObjectNotFoundError):
            resolver.resolve_with_backing("ownerA", SHA)

    def test_record_without_bytes_has_no_backing(
        self, resolver: LinkResolver, records: FakeRecords
    ) -> None:
        records.add("ownerA", size=5)
        with pytest.raises(NoBackingFileError):
            resolver.resolve_with_backing("ownerA", SHA)

    def test_record_with_bytes_is_backed(
        self,
        resolver: LinkResolver,
        records: FakeRecords,
        storage_backend: FilesystemStorageBackend,
    ) -> None:
        record = records.add("ownerA", size=5)
        storage_backend.write(record.storage_id, b"hello")

        resolution = resolver.resolve_with_backing("ownerA", SHA)

        assert resolution.kind == ResolutionKind.BACKED
        assert resolution.record == record

    def test_stored_link_resolves_without_bytes_check(
        self, resolver: LinkResolver, records: FakeRecords
    ) -> None:
        records.add("ownerA", linked_object="target-id")

        assert resolver.resolve_with_backing("ownerA", SHA).kind == ResolutionKind.LINK

    def test_garbage_record_not_found(self, resolver: LinkResolver, records: FakeRecords) -> None:
        records.add("ownerA", garbage=True)
        with pytest.raises(ObjectNotFoundError):
            resolver.resolve_with_backing("ownerA", SHA)


class TestResolveWithLinks:
    def test_proposes_link_to_backed_record(
        self,
        resolver: LinkResolver,
        records: FakeRecords,
        storage_backend: FilesystemStorageBackend,
    ) -> None:
        target = records.add("ownerA", size=5, mime_type="text/plain", object_name="a.txt")
        storage_backend.write(target.storage_id, b"hello")

        resolution = resolver.resolve_with_links("ownerB", SHA, object_name="b.txt")

        assert resolution.kind == ResolutionKind.NEW_LINK
        proposed = resolution.record
        assert proposed.owner == "ownerB"
        assert proposed.storage_id == storage_id_for("ownerB", SHA)
        assert proposed.linked_object == target.storage_id
        assert proposed.size == 5
        assert proposed.mime_type == "text/plain"
        assert proposed.object_name == "b.txt"

    def test_link_name_defaults_to_placeholder(
        self,
        resolver: LinkResolver,
        records: FakeRecords,
        storage_backend: FilesystemStorageBackend,
    ) -> None:
        target = records.add("ownerA", size=5)
        storage_backend.write(target.storage_id, b"hello")

        resolution = resolver.resolve_with_links("ownerB", SHA)

        assert resolution.record.object_name == f"{LINK_NAME_PREFIX}{SHA}"

    def test_link_keeps_name_of_dangling_record(
        self,
        resolver: LinkResolver,
        records: FakeRecords,
        storage_backend: FilesystemStorageBackend,
    ) -> None:
        target = records.add("ownerA", size=5)
        storage_backend.write(target.storage_id, b"hello")
        records.add("ownerB", object_name="mine.txt", time_created=T0)

        resolution = resolver.resolve_with_links("ownerB", SHA)

        assert resolution.record.object_name == "mine.txt"
        assert resolution.record.time_created == T0

    def test_no_target_raises(self, resolver: LinkResolver) -> None:
        with pytest.raises(NoLinkTargetError):
            resolver.resolve_with_links("ownerB", SHA)

    def test_auto_link_off_reraises(
        self,
        resolver: LinkResolver,
        records: FakeRecords,
        storage_backend: FilesystemStorageBackend,
    ) -> None:
        target = records.add("ownerA", size=5)
        storage_backend.write(target.storage_id, b"hello")

        with pytest.raises(ObjectNotFoundError):
            resolver.resolve_with_links("ownerB", SHA, auto_link=False)

    def test_own_backed_record_wins_over_link(
        self,
        resolver: LinkResolver,
        records: FakeRecords,
        storage_backend: FilesystemStorageBackend,
    ) -> None:
        other = records.add("ownerA", size=5)
        mine = records.add("ownerB", size=5)
        storage_backend.write(other.storage_id, b"hello")
        storage_backend.write(mine.storage_id, b"hello")

        assert resolver.resolve_with_links("ownerB", SHA).kind == ResolutionKind.BACKED


class TestFindLinkTarget:
    def test_oldest_backed_candidate_chosen(
        self,
        resolver: LinkResolver,
        records: FakeRecords,
        storage_backend: FilesystemStorageBackend,
    ) -> None:
        newer = records.add("ownerC", size=5, time_created=T0 + timedelta(days=1))
        older = records.add("ownerA", size=5, time_created=T0)
        storage_backend.write(newer.storage_id, b"hello")
        storage_backend.write(older.storage_id, b"hello")

        assert resolver.find_link_target("ownerB", SHA) == older

    def test_candidates_without_bytes_skipped(
        self,
        resolver: LinkResolver,
        records: FakeRecords,
        storage_backend: FilesystemStorageBackend,
    ) -> None:
        records.add("ownerA", size=5, time_created=T0)
        backed = records.add("ownerC", size=5, time_created=T0 + timedelta(days=1))
        storage_backend.write(backed.storage_id, b"hello")

        assert resolver.find_link_target("ownerB", SHA) == backed

    def test_links_are_never_targets(
        self,
        resolver: LinkResolver,
        records: FakeRecords,
    ) -> None:
        records.add("ownerA", linked_object="elsewhere")

        assert resolver.find_link_target("ownerB", SHA) is None

    def test_own_records_are_never_targets(
        self,
        resolver: LinkResolver,
        records: FakeRecords,
        storage_backend: FilesystemStorageBackend,
    ) -> None:
        mine = records.add("ownerB", size=5)
        storage_backend.write(mine.storage_id, b"hello")

        assert resolver.find_link_target("ownerB", SHA) is None
