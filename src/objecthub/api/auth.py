"""Caller identity for the objecthub API.

Authentication happens upstream; this module maps an API key presented in
the X-ObjectHub-Api-Key header to the caller identity the object service
trusts: who owns the records (owner), which principal is calling (subject)
and what kind of principal it is. Grants are always issued to the owner.

Environment Variables:
    OBJECTHUB_API_KEYS_JSON: {"<key>": {"owner": ..., "subject": ..., "calling_type": ...}}
"""

from __future__ import annotations

import hmac
import json
import logging
import os
from enum import Enum
from typing import Annotated

from fastapi import Depends, Request
from pydantic import BaseModel, ValidationError

from objecthub.api.errors import ObjectHubHttpError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-ObjectHub-Api-Key"
OBJECTHUB_API_KEYS_ENV = "OBJECTHUB_API_KEYS_JSON"


class CallingType(str, Enum):
    """Kind of authenticated principal."""

    USER = "USER"
    DEVICE = "DEVICE"
    SERVICE = "SERVICE"


class CallerIdentity(BaseModel):
    """Identity of an already-authenticated caller.

    A device acts on behalf of its owner and receives the same grants,
    including write grants for the owner's own records.
    """

    owner: str
    subject: str
    calling_type: CallingType = CallingType.USER


class ApiKeyRecord(BaseModel):
    """API key registry entry."""

    owner: str
    subject: str | None = None
    calling_type: CallingType = CallingType.USER


def _load_api_key_registry() -> dict[str, ApiKeyRecord]:
    """Load API key registry from environment variable.

    Returns:
        Dict mapping API key strings to ApiKeyRecord objects.
        Returns empty dict if env var missing or invalid JSON.
    """
    raw = os.environ.get(OBJECTHUB_API_KEYS_ENV)
    if not raw:
        return {}

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Failed to parse %s; treating as empty registry", OBJECTHUB_API_KEYS_ENV)
        return {}

    if not isinstance(parsed, dict):
        logger.warning("%s is not a dict; treating as empty registry", OBJECTHUB_API_KEYS_ENV)
        return {}

    registry: dict[str, ApiKeyRecord] = {}
    for key, value in parsed.items():
        if not isinstance(key, str) or not isinstance(value, dict):
            continue
        try:
            registry[key] = ApiKeyRecord.model_validate(value)
        except ValidationError:
            continue

    return registry


def _constant_time_lookup(
    provided_key: str, registry: dict[str, ApiKeyRecord]
) -> ApiKeyRecord | None:
    """Look up an API key comparing against every entry in constant time."""
    matched_record: ApiKeyRecord | None = None
    provided_bytes = provided_key.encode("utf-8")

    for registered_key, record in registry.items():
        if hmac.compare_digest(provided_bytes, registered_key.encode("utf-8")):
            matched_record = record

    return matched_record


async def require_caller(request: Request) -> CallerIdentity:
    """FastAPI dependency that resolves the caller identity.

    Raises:
        ObjectHubHttpError: 401 if the key is missing or unknown.
    """
    api_key = request.headers.get(API_KEY_HEADER)
    if not api_key:
        raise ObjectHubHttpError(
            status_code=401,
            code="UNAUTHORIZED",
            message="Missing API key",
        )

    record = _constant_time_lookup(api_key, _load_api_key_registry())
    if record is None:
        raise ObjectHubHttpError(
            status_code=401,
            code="UNAUTHORIZED",
            message="Invalid API key",
        )

    caller = CallerIdentity(
        owner=record.owner,
        subject=record.subject or record.owner,
        calling_type=record.calling_type,
    )
    request.state.caller = caller

    return caller


RequireCaller = Annotated[CallerIdentity, Depends(require_caller)]
