"""Subscription plans and byte-size parsing.

Each plan carries a property map; the ``OBJECTS`` property is the owner's
object storage allowance as a byte-size string such as ``"2GiB"``. Plans with
no properties (locked, cancelled) grant no storage.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from objecthub.services.objects.errors import QuotaSourceError

OBJECTS_PROPERTY = "OBJECTS"

_BYTE_UNITS: dict[str, int] = {
    "B": 1,
    "KB": 1000,
    "MB": 1000**2,
    "GB": 1000**3,
    "TB": 1000**4,
    "PB": 1000**5,
    "KiB": 1024,
    "MiB": 1024**2,
    "GiB": 1024**3,
    "TiB": 1024**4,
    "PiB": 1024**5,
}

_BYTE_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([A-Za-z]+)\s*$")


def parse_byte_size(value: str) -> int:
    """Parse a byte-size string with a mandatory unit.

    Decimal units (KB, MB, GB, ...) are powers of 1000, binary units
    (KiB, MiB, GiB, ...) are powers of 1024. Unit names are case sensitive.

    Args:
        value: Size such as "2GiB", "500MB" or "0GiB".

    Returns:
        Size in bytes, rounded down.

    Raises:
        QuotaSourceError: If the value has no number, no unit, or an unknown unit.
    """
    match = _BYTE_SIZE_PATTERN.match(value)
    if match is None:
        raise QuotaSourceError(f"Invalid byte size: {value!r}")

    number, unit = match.groups()
    multiplier = _BYTE_UNITS.get(unit)
    if multiplier is None:
        raise QuotaSourceError(f"Unknown byte size unit {unit!r} in {value!r}")

    try:
        return int(Decimal(number) * multiplier)
    except InvalidOperation as e:
        raise QuotaSourceError(f"Invalid byte size: {value!r}", cause=e) from e


@dataclass(frozen=True)
class Plan:
    """A subscription plan.

    Attributes:
        name: Plan name.
        properties: Capability map, or None for plans that grant nothing.
    """

    name: str
    properties: Mapping[str, str] | None = field(default=None)


PLAN_FREE = Plan("FREE", {"OBJECTS": "2GiB", "BANDWIDTH": "2GiB", "DEVICES": "25"})
PLAN_VIP = Plan("VIP", {"OBJECTS": "20GiB", "BANDWIDTH": "10GiB", "DEVICES": "100"})
PLAN_CUSTOM = Plan("CUSTOM", {"OBJECTS": "0GiB", "BANDWIDTH": "0GiB", "DEVICES": "0"})
PLAN_LOCKED = Plan("LOCKED")
PLAN_CANCELLED = Plan("CANCELLED")

PLANS: dict[str, Plan] = {
    plan.name: plan for plan in (PLAN_FREE, PLAN_VIP, PLAN_CUSTOM, PLAN_LOCKED, PLAN_CANCELLED)
}


def get_plan(name: str) -> Plan:
    """Look up a built-in plan by name (case insensitive).

    Raises:
        QuotaSourceError: If the plan is unknown.
    """
    plan = PLANS.get(name.strip().upper())
    if plan is None:
        raise QuotaSourceError(f"Unknown subscription plan: {name!r}")
    return plan
