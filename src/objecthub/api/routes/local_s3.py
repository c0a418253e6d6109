"""Local storage gateway serving signed object URLs.

Provides:
- GET /local-s3/{token} (download the bytes a read grant points at)
- PUT /local-s3/{token} (upload the bytes a write grant expects)

The token is the whole credential: no API key is required. Uploads are
accepted only when their length and sha256 match the grant.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import APIRouter, Request, Response
from starlette.concurrency import run_in_threadpool

from objecthub.api.errors import ObjectHubHttpError
from objecthub.services.objects.access import LOCAL_S3_PATH
from objecthub.services.objects.tokens import (
    METHOD_GET,
    METHOD_PUT,
    ObjectAccessClaims,
    ObjectTokenConfig,
    verify_object_token,
)
from objecthub.storage.backend import StorageBackend

logger = logging.getLogger(__name__)

router = APIRouter(prefix=LOCAL_S3_PATH, tags=["Storage"])


def _verify(request: Request, token: str, method: str) -> ObjectAccessClaims:
    """Verify the token and that it grants method.

    Raises:
        InvalidObjectTokenError: If the token does not verify.
        ObjectHubHttpError: 403 if the token grants another method.
    """
    config: ObjectTokenConfig = request.app.state.token_config
    claims = verify_object_token(token, config.secret)

    if claims.method != method:
        logger.warning("Rejected %s with a %s grant: storage_id=%s", method, claims.method, claims.aud)
        raise ObjectHubHttpError(
            status_code=403,
            code="INVALID_TOKEN",
            message=f"Token does not grant {method}",
        )
    return claims


def _content_disposition(name: str) -> str:
    filename = name.rsplit("/", 1)[-1].replace('"', "").replace("\\", "")
    if not filename:
        return "attachment"
    return f'attachment; filename="{filename}"'


@router.get("/{token}", operation_id="downloadObject")
async def download_object(token: str, request: Request) -> Response:
    """Serve the bytes a read grant points at.

    Raises:
        InvalidObjectTokenError: 403 for bad or expired tokens.
        BlobNotFoundError: 404 if the bytes were never uploaded.
    """
    claims = _verify(request, token, METHOD_GET)
    backend: StorageBackend = request.app.state.storage_backend

    data = await run_in_threadpool(backend.read, claims.aud)

    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": _content_disposition(claims.disposition_name)},
    )


@router.put("/{token}", status_code=200, operation_id="uploadObject")
async def upload_object(token: str, request: Request) -> Response:
    """Accept the bytes a write grant expects.

    Raises:
        InvalidObjectTokenError: 403 for bad or expired tokens.
        ObjectHubHttpError: 400 if the body size or sha256 differs from the grant.
    """
    claims = _verify(request, token, METHOD_PUT)
    body = await request.body()

    if len(body) != claims.size:
        logger.warning(
            "Rejected upload with wrong size: storage_id=%s expected=%d got=%d",
            claims.aud,
            claims.size,
            len(body),
        )
        raise ObjectHubHttpError(
            status_code=400,
            code="SIZE_MISMATCH",
            message="Upload size does not match the registered size",
            details={"expected": claims.size, "received": len(body)},
        )

    if hashlib.sha256(body).hexdigest() != claims.sha.lower():
        logger.warning("Rejected upload with wrong sha256: storage_id=%s", claims.aud)
        raise ObjectHubHttpError(
            status_code=400,
            code="SHA_MISMATCH",
            message="Upload sha256 does not match the registered sha256sum",
        )

    backend: StorageBackend = request.app.state.storage_backend
    written = await run_in_threadpool(backend.write, claims.aud, body)

    logger.info("Stored object bytes: storage_id=%s size=%d", claims.aud, written)
    return Response(status_code=200)
