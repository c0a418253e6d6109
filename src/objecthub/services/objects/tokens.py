"""Object access tokens.

Compact HS256 JWS tokens scoped to one storage id, one method and a short
lifetime. The token travels inside the signed URL; the storage gateway
verifies it and serves or accepts bytes for the audience storage id only.

Claims:
    iss: API endpoint that issued the grant
    sub: Principal the grant was issued to
    aud: Storage id the grant applies to
    iat / exp: Issue and expiry time (Unix seconds)
    method: "GET" or "PUT"
    size: Expected byte count
    sha: Expected content hash (hex)
    disposition_name: Filename for downloads

Environment Variables:
    OBJECTHUB_OBJECT_TOKEN_SECRET: HMAC secret (required to issue tokens)
    OBJECTHUB_OBJECT_TOKEN_TTL: Token lifetime in seconds (default: 60)
    OBJECTHUB_PUBLIC_URL: Base URL of the storage gateway
        (default: http://localhost:12365)

SECURITY: Never log secrets or full tokens.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import os
import time
from dataclasses import asdict, dataclass
from typing import Any

from objecthub.services.objects.errors import InvalidObjectTokenError, TokenSigningError

logger = logging.getLogger(__name__)

OBJECTHUB_OBJECT_TOKEN_SECRET_ENV = "OBJECTHUB_OBJECT_TOKEN_SECRET"
OBJECTHUB_OBJECT_TOKEN_TTL_ENV = "OBJECTHUB_OBJECT_TOKEN_TTL"
OBJECTHUB_PUBLIC_URL_ENV = "OBJECTHUB_PUBLIC_URL"

DEFAULT_TOKEN_TTL_SECONDS = 60
DEFAULT_PUBLIC_URL = "http://localhost:12365"

METHOD_GET = "GET"
METHOD_PUT = "PUT"

_ALGORITHM = "HS256"
_HEADER = {"alg": _ALGORITHM, "typ": "JWT"}


@dataclass(frozen=True, slots=True)
class ObjectTokenConfig:
    """Access token configuration.

    Attributes:
        secret: HMAC secret. Empty means tokens cannot be issued.
        ttl_seconds: Lifetime of issued tokens.
        public_url: Base URL that signed URLs are built on.
    """

    secret: str
    ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    public_url: str = DEFAULT_PUBLIC_URL

    @property
    def issuer_url(self) -> str:
        """API endpoint recorded as the token issuer."""
        return f"{self.public_url}/v1/objects"


def load_token_config() -> ObjectTokenConfig:
    """Load token configuration from environment.

    A missing secret is not an error here; issuing a token without one is.
    """
    secret = os.environ.get(OBJECTHUB_OBJECT_TOKEN_SECRET_ENV, "")

    try:
        ttl = int(os.environ.get(OBJECTHUB_OBJECT_TOKEN_TTL_ENV, str(DEFAULT_TOKEN_TTL_SECONDS)))
    except ValueError:
        logger.warning(
            "Invalid %s; using default %d", OBJECTHUB_OBJECT_TOKEN_TTL_ENV, DEFAULT_TOKEN_TTL_SECONDS
        )
        ttl = DEFAULT_TOKEN_TTL_SECONDS
    if ttl <= 0:
        ttl = DEFAULT_TOKEN_TTL_SECONDS

    public_url = os.environ.get(OBJECTHUB_PUBLIC_URL_ENV, DEFAULT_PUBLIC_URL).rstrip("/")

    return ObjectTokenConfig(secret=secret, ttl_seconds=ttl, public_url=public_url)


@dataclass(frozen=True, slots=True)
class ObjectAccessClaims:
    """Claims carried by an object access token."""

    iss: str
    sub: str
    aud: str
    iat: int
    exp: int
    method: str
    size: int
    sha: str
    disposition_name: str

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ObjectAccessClaims:
        """Build claims from a decoded payload.

        Raises:
            InvalidObjectTokenError: If a claim is missing or has the wrong type.
        """
        try:
            return cls(
                iss=str(payload["iss"]),
                sub=str(payload["sub"]),
                aud=str(payload["aud"]),
                iat=int(payload["iat"]),
                exp=int(payload["exp"]),
                method=str(payload["method"]),
                size=int(payload["size"]),
                sha=str(payload.get("sha", "")),
                disposition_name=str(payload.get("disposition_name", "")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidObjectTokenError("Token claims are incomplete") from e


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(part: str) -> bytes:
    padding = 4 - len(part) % 4
    if padding != 4:
        part += "=" * padding
    return base64.urlsafe_b64decode(part.encode("ascii"))


def _json_segment(data: dict[str, Any]) -> str:
    return _b64url_encode(json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8"))


def _sign(secret: str, signing_input: str) -> bytes:
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=signing_input.encode("ascii"),
        digestmod=hashlib.sha256,
    ).digest()


class ObjectTokenSigner:
    """Signs object access claims with the shared HMAC secret."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def sign(self, claims: ObjectAccessClaims) -> str:
        """Encode and sign claims as a compact JWS.

        Raises:
            TokenSigningError: If no secret is configured.
        """
        if not self._secret:
            raise TokenSigningError("Object token secret is not configured")

        signing_input = f"{_json_segment(_HEADER)}.{_json_segment(claims.to_payload())}"
        signature = _b64url_encode(_sign(self._secret, signing_input))
        return f"{signing_input}.{signature}"


def verify_object_token(
    token: str,
    secret: str,
    *,
    now: int | None = None,
) -> ObjectAccessClaims:
    """Verify a token's signature and expiry and return its claims.

    Args:
        token: Compact JWS from a signed URL.
        secret: HMAC secret the token must be signed with.
        now: Current Unix time (default: time.time()).

    Raises:
        InvalidObjectTokenError: If the token is malformed, uses another
            algorithm, has a bad signature, or has expired.
    """
    if not secret:
        raise InvalidObjectTokenError("Object token secret is not configured")

    parts = token.split(".")
    if len(parts) != 3:
        raise InvalidObjectTokenError("Malformed token")

    try:
        header = json.loads(_b64url_decode(parts[0]).decode("utf-8"))
        payload = json.loads(_b64url_decode(parts[1]).decode("utf-8"))
        signature = _b64url_decode(parts[2])
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidObjectTokenError("Malformed token") from e

    if not isinstance(header, dict) or header.get("alg") != _ALGORITHM:
        raise InvalidObjectTokenError("Unexpected token algorithm")
    if not isinstance(payload, dict):
        raise InvalidObjectTokenError("Malformed token")

    expected = _sign(secret, f"{parts[0]}.{parts[1]}")
    if not hmac.compare_digest(expected, signature):
        raise InvalidObjectTokenError("Invalid token signature")

    claims = ObjectAccessClaims.from_payload(payload)

    current = int(time.time()) if now is None else now
    if current >= claims.exp:
        raise InvalidObjectTokenError("Token has expired")

    return claims
