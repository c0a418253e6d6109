"""Object record routes for the objecthub API.

Provides:
- POST /v1/objects (Register Object)
- GET /v1/objects (List Objects)
- GET /v1/objects/{sha} (Get Object)
- PUT /v1/objects/{sha} (Update Object)
- DELETE /v1/objects/{sha} (Delete Object)

Register, get and update responses carry signed read/write URLs. The
X-Object-Type header tells whether the record is a link or owns its bytes.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Query, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from objecthub.api.auth import RequireCaller
from objecthub.models.object_record import ObjectRecord
from objecthub.services.objects.access import ObjectWithAccess
from objecthub.services.objects.errors import ObjectValidationError
from objecthub.services.objects.service import (
    ObjectService,
    RegisterOutcome,
    object_type_of,
)
from objecthub.services.objects.sizes import normalize_size

router = APIRouter(prefix="/v1", tags=["Objects"])

OBJECT_TYPE_HEADER = "X-Object-Type"
OBJECT_OUTCOME_HEADER = "X-Object-Outcome"


class ObjectPayload(BaseModel):
    """Request body for register and update."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    sha256sum: str | None = None
    owner: str | None = None
    objectname: str = ""
    size: str | int | None = None
    sizeint: int | None = None
    mime_type: str | None = Field(default=None, alias="mime-type")

    def has_size(self) -> bool:
        return self.size not in (None, "") or bool(self.sizeint)


class ObjectResponse(BaseModel):
    """Object record wire shape."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    storage_id: str = Field(alias="storage-id")
    owner: str
    objectname: str
    sha256sum: str
    size: str
    sizeint: int
    mime_type: str = Field(alias="mime-type")
    garbage: bool
    time_created: str | None = Field(default=None, alias="time-created")
    time_modified: str | None = Field(default=None, alias="time-modified")


class ObjectWithAccessResponse(ObjectResponse):
    """Object record with signed URLs."""

    signed_puturl: str = Field(alias="signed-puturl")
    signed_geturl: str = Field(alias="signed-geturl")
    now: str
    expire_time: str = Field(alias="expire-time")


def _get_service(request: Request) -> ObjectService:
    """Get the ObjectService configured on the app."""
    service: ObjectService = request.app.state.object_service
    return service


def _auto_link(autolink: str | None) -> bool:
    """Auto-linking is on unless the caller passes autolink=no."""
    return autolink != "no"


def _payload_sha(body: ObjectPayload) -> str:
    """Pick the content hash from a register payload.

    Raises:
        ObjectValidationError: If no hash is given or id and sha256sum differ.
    """
    if not body.sha256sum and not body.id:
        raise ObjectValidationError("sha256sum is required")
    if body.id and body.sha256sum and body.id.lower() != body.sha256sum.lower():
        raise ObjectValidationError("id must match sha256sum")
    return body.sha256sum or body.id or ""


def _payload_size(body: ObjectPayload) -> int:
    size = body.size if isinstance(body.size, int) else (body.size or None)
    return normalize_size(size, body.sizeint)


def _to_response(record: ObjectRecord) -> ObjectResponse:
    return ObjectResponse.model_validate(record.to_dict())


def _to_access_response(with_access: ObjectWithAccess) -> ObjectWithAccessResponse:
    return ObjectWithAccessResponse.model_validate(with_access.to_dict())


def _parse_filter(raw: str | None) -> dict[str, Any]:
    """Parse the JSON filter query parameter.

    Raises:
        ObjectValidationError: If the filter is not a JSON object.
    """
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ObjectValidationError(f"filter is not valid JSON: {e.msg}") from e
    if not isinstance(parsed, dict):
        raise ObjectValidationError("filter must be a JSON object")
    return parsed


@router.post(
    "/objects",
    response_model=ObjectWithAccessResponse,
    status_code=201,
    operation_id="registerObject",
)
def register_object(
    body: ObjectPayload,
    request: Request,
    response: Response,
    caller: RequireCaller,
    autolink: str | None = Query(default=None),
) -> ObjectWithAccessResponse:
    """Register a content hash for the caller.

    Args:
        body: Object payload with sha256sum (or id), objectname, size, mime-type.
        request: FastAPI request for service access.
        response: Response used to set status and headers.
        caller: Injected caller identity.
        autolink: "no" disables linking to another owner's bytes.

    Returns:
        The caller's record with signed URLs. 201 when newly created,
        200 when it already existed, was repaired, or became a link.
    """
    service = _get_service(request)

    result = service.register(
        caller.owner,
        _payload_sha(body),
        object_name=body.objectname,
        size=_payload_size(body),
        mime_type=body.mime_type or "",
        auto_link=_auto_link(autolink),
    )

    if result.outcome != RegisterOutcome.CREATED:
        response.status_code = 200
    response.headers[OBJECT_TYPE_HEADER] = result.object_type
    response.headers[OBJECT_OUTCOME_HEADER] = result.outcome.value

    return _to_access_response(service.grant(result.record, caller.owner))


@router.get(
    "/objects",
    response_model=list[ObjectResponse],
    operation_id="listObjects",
)
def list_objects(
    request: Request,
    caller: RequireCaller,
    filter_: str | None = Query(default=None, alias="filter"),
) -> list[ObjectResponse]:
    """List the caller's live records.

    Args:
        request: FastAPI request for service access.
        caller: Injected caller identity.
        filter_: Optional JSON object of wire-field equality filters
            (query parameter "filter").
    """
    service = _get_service(request)
    records = service.list(caller.owner, _parse_filter(filter_))
    return [_to_response(record) for record in records]


@router.get(
    "/objects/{sha}",
    response_model=ObjectWithAccessResponse,
    operation_id="getObject",
)
def get_object(
    sha: str,
    request: Request,
    response: Response,
    caller: RequireCaller,
) -> ObjectWithAccessResponse:
    """Get one of the caller's records with signed URLs.

    Raises:
        ObjectAccessDeniedError: 403 if the caller has no live record for sha.
    """
    service = _get_service(request)

    record = service.fetch(caller.owner, sha)
    response.headers[OBJECT_TYPE_HEADER] = object_type_of(record)

    return _to_access_response(service.grant(record, caller.owner))


@router.put(
    "/objects/{sha}",
    response_model=ObjectWithAccessResponse,
    operation_id="updateObject",
)
def update_object(
    sha: str,
    body: ObjectPayload,
    request: Request,
    response: Response,
    caller: RequireCaller,
    autolink: str | None = Query(default=None),
) -> ObjectWithAccessResponse:
    """Update the objectname (and, for content-owning records, size and mime-type).

    The payload's owner and sha256sum, when sent, must match the record.
    """
    service = _get_service(request)

    record = service.update(
        caller.owner,
        sha,
        object_name=body.objectname or None,
        size=_payload_size(body) if body.has_size() else None,
        mime_type=body.mime_type,
        claimed_owner=body.owner,
        claimed_sha=body.sha256sum or body.id,
        auto_link=_auto_link(autolink),
    )
    response.headers[OBJECT_TYPE_HEADER] = object_type_of(record)

    return _to_access_response(service.grant(record, caller.owner))


@router.delete(
    "/objects/{sha}",
    response_model=ObjectResponse,
    operation_id="deleteObject",
)
def delete_object(
    sha: str,
    request: Request,
    caller: RequireCaller,
) -> ObjectResponse:
    """Soft-delete one of the caller's records.

    Returns the record as it now stands (garbage=true). Bytes are left for
    the external collector.
    """
    service = _get_service(request)
    return _to_response(service.delete(caller.owner, sha))
