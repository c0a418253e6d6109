"""Persistence repositories for objecthub.

Each repository has a Postgres implementation and an in-memory fallback
with the same surface.
"""

from objecthub.persistence.repositories.objects import (
    InMemoryObjectsRepository,
    ObjectsRepository,
    UsageLimitExceededError,
    get_objects_repository,
)
from objecthub.persistence.repositories.subscriptions import (
    InMemorySubscriptionsRepository,
    Subscription,
    SubscriptionsRepository,
    get_subscriptions_repository,
)

__all__ = [
    "InMemoryObjectsRepository",
    "ObjectsRepository",
    "UsageLimitExceededError",
    "get_objects_repository",
    "InMemorySubscriptionsRepository",
    "Subscription",
    "SubscriptionsRepository",
    "get_subscriptions_repository",
]
