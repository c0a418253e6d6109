"""Postgres integration tests for the object and subscription repositories.

These tests require a real PostgreSQL instance and use:
- OBJECTHUB_DATABASE_ADMIN_URL for migrations and repository access
- OBJECTHUB_DATABASE_URL to confirm the app database is configured

Set OBJECTHUB_REQUIRE_POSTGRES=1 to fail instead of skip when unset.

Run with: pytest -q tests/test_objects_postgres.py
"""

from __future__ import annotations

import os
import threading
from collections.abc import Generator
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import text

from objecthub.models.object_record import ObjectRecord
from objecthub.persistence.repositories.objects import (
    ObjectsRepository,
    UsageLimitExceededError,
)
from objecthub.persistence.repositories.subscriptions import SubscriptionsRepository
from objecthub.services.objects.identity import storage_id_for

if TYPE_CHECKING:
    from sqlalchemy import Engine

pytestmark = pytest.mark.postgres

ADMIN_URL_ENV = "OBJECTHUB_DATABASE_ADMIN_URL"
APP_URL_ENV = "OBJECTHUB_DATABASE_URL"
REQUIRE_POSTGRES_ENV = "OBJECTHUB_REQUIRE_POSTGRES"

SHA = "ab" * 32
OTHER_SHA = "cd" * 32


def _skip_or_fail_if_no_postgres() -> None:
    """Skip or fail test if PostgreSQL is not configured."""
    admin_url = os.environ.get(ADMIN_URL_ENV)
    app_url = os.environ.get(APP_URL_ENV)
    require_postgres = os.environ.get(REQUIRE_POSTGRES_ENV, "0") == "1"

    if not admin_url or not app_url:
        msg = f"PostgreSQL integration tests require {ADMIN_URL_ENV} and {APP_URL_ENV} env vars"
        if require_postgres:
            pytest.fail(f"REQUIRED: {msg} ({REQUIRE_POSTGRES_ENV}=1)")
        else:
            pytest.skip(msg)


@pytest.fixture(scope="module")
def admin_engine() -> Generator[Engine, None, None]:
    """Create admin engine for migrations and test setup."""
    _skip_or_fail_if_no_postgres()

    from objecthub.persistence.db import get_admin_engine, reset_engines

    engine = get_admin_engine()
    yield engine
    reset_engines()


@pytest.fixture(scope="module")
def migrated_db(admin_engine: Engine) -> Generator[None, None, None]:
    """Run migrations to set up schema before tests."""
    from objecthub.persistence.migrate import run_downgrade, run_upgrade

    run_upgrade(admin_engine)
    yield
    run_downgrade(admin_engine)


@pytest.fixture
def repo(admin_engine: Engine, migrated_db: None) -> Generator[ObjectsRepository, None, None]:
    """Objects repository over clean tables."""
    with admin_engine.begin() as conn:
        conn.execute(text("TRUNCATE objects, subscriptions"))

    yield ObjectsRepository(admin_engine)

    with admin_engine.begin() as conn:
        conn.execute(text("TRUNCATE objects, subscriptions"))


def _record(owner: str, sha: str = SHA, size: int = 5, **fields: object) -> ObjectRecord:
    return ObjectRecord(
        storage_id=storage_id_for(owner, sha), sha=sha, owner=owner, size=size, **fields
    )


class TestObjectsRepository:
    def test_save_and_get(self, repo: ObjectsRepository) -> None:
        saved = repo.save_within_quota(_record("ownerA", object_name="a.txt"), 100)

        fetched = repo.get(saved.storage_id)

        assert fetched is not None
        assert fetched.object_name == "a.txt"
        assert fetched.size == 5
        assert fetched.time_created is not None

    def test_resave_counts_once(self, repo: ObjectsRepository) -> None:
        repo.save_within_quota(_record("ownerA"), 100)
        repo.save_within_quota(_record("ownerA"), 100)

        assert repo.usage("ownerA") == 5

    def test_over_limit_rejected_without_write(self, repo: ObjectsRepository) -> None:
        with pytest.raises(UsageLimitExceededError):
            repo.save_within_quota(_record("ownerA", size=101), 100)

        assert repo.get(storage_id_for("ownerA", SHA)) is None

    def test_mark_garbage_and_resurrect(self, repo: ObjectsRepository) -> None:
        created = repo.save_within_quota(_record("ownerA"), 100)

        deleted = repo.mark_garbage(created.storage_id)
        assert deleted is not None and deleted.garbage is True
        assert repo.get(created.storage_id) is None
        assert repo.get(created.storage_id, include_garbage=True) is not None
        assert repo.mark_garbage(created.storage_id) is None
        assert repo.usage("ownerA") == 0

        again = repo.save_within_quota(_record("ownerA"), 100)
        assert again.garbage is False
        assert again.time_created == created.time_created

    def test_link_candidates_oldest_first(self, repo: ObjectsRepository) -> None:
        first = repo.save_within_quota(_record("ownerA"), 100)
        second = repo.save_within_quota(_record("ownerC"), 100)
        repo.save_within_quota(_record("ownerD", linked_object=first.storage_id), 100)

        candidates = repo.find_link_candidates(SHA, exclude_owner="ownerB")

        assert [c.storage_id for c in candidates] == [first.storage_id, second.storage_id]

    def test_list_by_owner_with_filters(self, repo: ObjectsRepository) -> None:
        repo.save_within_quota(_record("ownerA", object_name="a"), 100)
        repo.save_within_quota(_record("ownerA", sha=OTHER_SHA, size=7, object_name="b"), 100)

        assert [r.object_name for r in repo.list_by_owner("ownerA")] == ["a", "b"]
        assert [r.object_name for r in repo.list_by_owner("ownerA", {"size": 7})] == ["b"]

    def test_concurrent_writers_serialize_on_quota(self, repo: ObjectsRepository) -> None:
        barrier = threading.Barrier(2)
        results: list[str] = []

        def write(sha: str) -> None:
            barrier.wait()
            try:
                repo.save_within_quota(_record("ownerA", sha=sha, size=60), 100)
                results.append("ok")
            except UsageLimitExceededError:
                results.append("rejected")

        threads = [threading.Thread(target=write, args=(s,)) for s in (SHA, OTHER_SHA)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(results) == ["ok", "rejected"]
        assert repo.usage("ownerA") == 60


class TestSubscriptionsRepository:
    def test_lookup(self, admin_engine: Engine, repo: ObjectsRepository) -> None:
        with admin_engine.begin() as conn:
            conn.execute(
                text(
                    "INSERT INTO subscriptions (subject, plan, attrs) "
                    "VALUES ('ownerA', 'VIP', '{\"OBJECTS\": \"5GiB\"}'::jsonb)"
                )
            )

        subscriptions = SubscriptionsRepository(admin_engine)
        found = subscriptions.get_by_subject("ownerA")

        assert found is not None
        assert found.plan == "VIP"
        assert found.attrs == {"OBJECTS": "5GiB"}
        assert subscriptions.get_by_subject("nobody") is None
