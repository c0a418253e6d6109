"""Tests for subscription plans, byte-size parsing and the quota source."""

from __future__ import annotations

import pytest

from objecthub.persistence.db import MetadataStoreError
from objecthub.persistence.repositories.subscriptions import (
    InMemorySubscriptionsRepository,
    Subscription,
)
from objecthub.services.objects.errors import QuotaSourceError
from objecthub.services.subscriptions.plans import (
    PLAN_CUSTOM,
    PLAN_FREE,
    PLAN_LOCKED,
    PLAN_VIP,
    get_plan,
    parse_byte_size,
)
from objecthub.services.subscriptions.quota_source import (
    OBJECTHUB_DEFAULT_PLAN_ENV,
    SubscriptionQuotaSource,
    load_quota_config,
)

GIB = 1024**3


class TestParseByteSize:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2GiB", 2 * GIB),
            ("20GiB", 20 * GIB),
            ("0GiB", 0),
            ("1KiB", 1024),
            ("1KB", 1000),
            ("500MB", 500_000_000),
            ("1.5KiB", 1536),
            ("10B", 10),
            (" 3 MiB ", 3 * 1024**2),
        ],
    )
    def test_parses_units(self, value: str, expected: int) -> None:
        assert parse_byte_size(value) == expected

    @pytest.mark.parametrize("value", ["", "GiB", "12", "12XB", "twoGiB", "-1GiB"])
    def test_rejects_malformed(self, value: str) -> None:
        with pytest.raises(QuotaSourceError):
            parse_byte_size(value)


class TestPlans:
    def test_builtin_allowances(self) -> None:
        assert PLAN_FREE.properties is not None
        assert parse_byte_size(PLAN_FREE.properties["OBJECTS"]) == 2 * GIB
        assert PLAN_VIP.properties is not None
        assert parse_byte_size(PLAN_VIP.properties["OBJECTS"]) == 20 * GIB
        assert PLAN_CUSTOM.properties is not None
        assert parse_byte_size(PLAN_CUSTOM.properties["OBJECTS"]) == 0
        assert PLAN_LOCKED.properties is None

    def test_get_plan_is_case_insensitive(self) -> None:
        assert get_plan("vip") is PLAN_VIP

    def test_unknown_plan_rejected(self) -> None:
        with pytest.raises(QuotaSourceError):
            get_plan("PLATINUM")


class TestSubscriptionQuotaSource:
    def test_owner_without_subscription_gets_default_plan(self) -> None:
        source = SubscriptionQuotaSource(InMemorySubscriptionsRepository())
        assert source.quota_for("nobody") == 2 * GIB

    def test_injected_default_plan(self) -> None:
        source = SubscriptionQuotaSource(InMemorySubscriptionsRepository(), PLAN_VIP)
        assert source.quota_for("nobody") == 20 * GIB

    def test_subscription_plan_used(self) -> None:
        repo = InMemorySubscriptionsRepository()
        repo.put(Subscription(subject="ownerA", plan="VIP"))

        assert SubscriptionQuotaSource(repo).quota_for("ownerA") == 20 * GIB

    def test_locked_plan_grants_nothing(self) -> None:
        repo = InMemorySubscriptionsRepository()
        repo.put(Subscription(subject="ownerA", plan="LOCKED"))

        assert SubscriptionQuotaSource(repo).quota_for("ownerA") == 0

    def test_subscription_attrs_override_plan(self) -> None:
        repo = InMemorySubscriptionsRepository()
        repo.put(Subscription(subject="ownerA", plan="CUSTOM", attrs={"OBJECTS": "5GiB"}))
        repo.put(Subscription(subject="ownerB", plan="FREE", attrs={"OBJECTS": 1234}))

        source = SubscriptionQuotaSource(repo)
        assert source.quota_for("ownerA") == 5 * GIB
        assert source.quota_for("ownerB") == 1234

    def test_boolean_override_rejected(self) -> None:
        repo = InMemorySubscriptionsRepository()
        repo.put(Subscription(subject="ownerA", plan="FREE", attrs={"OBJECTS": True}))

        with pytest.raises(QuotaSourceError):
            SubscriptionQuotaSource(repo).quota_for("ownerA")

    def test_lookup_failure_becomes_quota_source_error(self) -> None:
        class BrokenLookup:
            def get_by_subject(self, subject: str) -> Subscription | None:
                raise MetadataStoreError("connection refused", operation="get_subscription")

        with pytest.raises(QuotaSourceError):
            SubscriptionQuotaSource(BrokenLookup()).quota_for("ownerA")


class TestQuotaConfig:
    def test_default_is_free(self) -> None:
        assert load_quota_config().default_plan is PLAN_FREE

    def test_env_selects_plan(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(OBJECTHUB_DEFAULT_PLAN_ENV, "vip")
        assert load_quota_config().default_plan is PLAN_VIP

    def test_unknown_env_plan_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(OBJECTHUB_DEFAULT_PLAN_ENV, "gold")
        with pytest.raises(QuotaSourceError):
            load_quota_config()
