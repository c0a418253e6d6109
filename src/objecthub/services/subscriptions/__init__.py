"""Subscription plans and the quota source built on them."""

from objecthub.services.subscriptions.plans import (
    PLANS,
    Plan,
    get_plan,
    parse_byte_size,
)
from objecthub.services.subscriptions.quota_source import (
    QuotaConfig,
    SubscriptionQuotaSource,
    load_quota_config,
)

__all__ = [
    "PLANS",
    "Plan",
    "QuotaConfig",
    "SubscriptionQuotaSource",
    "get_plan",
    "load_quota_config",
    "parse_byte_size",
]
