"""Subscription-backed quota source.

Resolves an owner's object storage quota in bytes: the owner's subscription
plan, with per-subscription attribute overrides, falling back to a default
plan when the owner has no subscription.

Environment Variables:
    OBJECTHUB_DEFAULT_PLAN: Plan for owners without a subscription (default: FREE)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Protocol

from objecthub.persistence.db import MetadataStoreError
from objecthub.persistence.repositories.subscriptions import Subscription
from objecthub.services.objects.errors import QuotaSourceError
from objecthub.services.subscriptions.plans import (
    OBJECTS_PROPERTY,
    PLAN_FREE,
    Plan,
    get_plan,
    parse_byte_size,
)

logger = logging.getLogger(__name__)

OBJECTHUB_DEFAULT_PLAN_ENV = "OBJECTHUB_DEFAULT_PLAN"


class SubscriptionLookup(Protocol):
    """Anything that can find a subscription by subject."""

    def get_by_subject(self, subject: str) -> Subscription | None: ...


@dataclass(frozen=True, slots=True)
class QuotaConfig:
    """Quota source configuration."""

    default_plan: Plan = PLAN_FREE


def load_quota_config() -> QuotaConfig:
    """Load quota configuration from environment.

    Raises:
        QuotaSourceError: If OBJECTHUB_DEFAULT_PLAN names an unknown plan.
    """
    raw = os.environ.get(OBJECTHUB_DEFAULT_PLAN_ENV, "").strip()
    if not raw:
        return QuotaConfig()
    return QuotaConfig(default_plan=get_plan(raw))


class SubscriptionQuotaSource:
    """Quota source that reads the owner's subscription."""

    def __init__(self, repository: SubscriptionLookup, default_plan: Plan = PLAN_FREE) -> None:
        """Initialize the quota source.

        Args:
            repository: Subscription lookup.
            default_plan: Plan applied to owners with no subscription.
        """
        self._repository = repository
        self._default_plan = default_plan

    @property
    def default_plan(self) -> Plan:
        return self._default_plan

    def quota_for(self, owner: str) -> int:
        """Return the owner's object storage quota in bytes.

        Raises:
            QuotaSourceError: If the subscription cannot be read or the plan's
                allowance cannot be parsed.
        """
        try:
            subscription = self._repository.get_by_subject(owner)
        except MetadataStoreError as e:
            raise QuotaSourceError(
                "Subscription lookup failed", owner=owner, cause=e
            ) from e

        if subscription is None:
            plan = self._default_plan
            overrides: dict[str, object] = {}
        else:
            plan = get_plan(subscription.plan)
            overrides = dict(subscription.attrs)

        properties: dict[str, object] = dict(plan.properties or {})
        properties.update(overrides)

        allowance = properties.get(OBJECTS_PROPERTY)
        if allowance is None:
            logger.debug("Plan %s grants no object storage to owner=%s", plan.name, owner)
            return 0
        if isinstance(allowance, bool):
            raise QuotaSourceError(f"Invalid {OBJECTS_PROPERTY} property", owner=owner)
        if isinstance(allowance, int):
            return allowance
        if not isinstance(allowance, str):
            raise QuotaSourceError(f"Invalid {OBJECTS_PROPERTY} property", owner=owner)

        return parse_byte_size(allowance)
