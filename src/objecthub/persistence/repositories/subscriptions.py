"""Subscription lookup repositories.

The subscriptions table is owned by the billing side; this service only reads
it to find an owner's plan and attribute overrides.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import text

from objecthub.persistence.db import get_app_engine, is_postgres_configured, translate_db_errors

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Subscription:
    """An owner's subscription.

    Attributes:
        subject: Owner the subscription belongs to.
        plan: Plan name (e.g., "FREE", "VIP").
        attrs: Per-subscription property overrides (e.g., {"OBJECTS": "5GiB"}).
    """

    subject: str
    plan: str
    attrs: Mapping[str, Any] = field(default_factory=dict)


class SubscriptionsRepository:
    """Postgres repository for subscription lookups."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get_by_subject(self, subject: str) -> Subscription | None:
        """Get the subscription for a subject, or None if there is none."""
        with translate_db_errors("get_subscription"), self._engine.begin() as conn:
            row = conn.execute(
                text("SELECT subject, plan, attrs FROM subscriptions WHERE subject = :subject"),
                {"subject": subject},
            ).fetchone()

        if row is None:
            return None

        attrs = row.attrs
        if isinstance(attrs, str):
            attrs = json.loads(attrs)

        return Subscription(subject=row.subject, plan=row.plan, attrs=attrs or {})


_in_memory_store: dict[str, Subscription] = {}


class InMemorySubscriptionsRepository:
    """In-memory fallback repository for when Postgres is not configured."""

    def get_by_subject(self, subject: str) -> Subscription | None:
        """Get the subscription for a subject from memory."""
        return _in_memory_store.get(subject)

    def put(self, subscription: Subscription) -> None:
        """Store a subscription in memory."""
        _in_memory_store[subscription.subject] = subscription


def clear_in_memory_store() -> None:
    """Clear the in-memory store. For testing only."""
    _in_memory_store.clear()


def get_subscriptions_repository(
    engine: Engine | None = None,
) -> SubscriptionsRepository | InMemorySubscriptionsRepository:
    """Factory to get the appropriate subscriptions repository."""
    if engine is not None:
        return SubscriptionsRepository(engine)
    if is_postgres_configured():
        return SubscriptionsRepository(get_app_engine())
    return InMemorySubscriptionsRepository()
