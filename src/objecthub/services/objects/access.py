"""Signed URL issuance for object records."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from objecthub.models.object_record import ObjectRecord
from objecthub.services.objects.tokens import (
    METHOD_GET,
    METHOD_PUT,
    ObjectAccessClaims,
    ObjectTokenConfig,
    ObjectTokenSigner,
)

LOCAL_S3_PATH = "/local-s3"


@dataclass(frozen=True)
class ObjectWithAccess:
    """A record plus the signed URLs that grant access to its bytes.

    Attributes:
        record: The object record.
        signed_get_url: Read URL for the record's bytes.
        signed_put_url: Write URL, or "" when the caller may not write.
        now: Issue time (Unix seconds).
        expire_time: Expiry of both URLs (Unix seconds).
    """

    record: ObjectRecord
    signed_get_url: str
    signed_put_url: str
    now: int
    expire_time: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        data = self.record.to_dict()
        data.update(
            {
                "signed-puturl": self.signed_put_url,
                "signed-geturl": self.signed_get_url,
                "now": str(self.now),
                "expire-time": str(self.expire_time),
            }
        )
        return data


class AccessIssuer:
    """Issues short-lived read and write grants for object records."""

    def __init__(self, config: ObjectTokenConfig, signer: ObjectTokenSigner | None = None) -> None:
        self._config = config
        self._signer = signer or ObjectTokenSigner(config.secret)

    @property
    def config(self) -> ObjectTokenConfig:
        return self._config

    def make_accessible(
        self,
        record: ObjectRecord,
        subject: str,
        *,
        now: int | None = None,
    ) -> ObjectWithAccess:
        """Attach signed URLs to a record.

        The read grant always targets the storage id that holds the bytes,
        following links. A write grant is issued only to the record's owner
        and only for content-owning records; link holders never get one.

        Args:
            record: Record to grant access to.
            subject: Principal the grants are issued to.
            now: Issue time (default: time.time()).

        Raises:
            TokenSigningError: If the grants cannot be signed.
        """
        issued_at = int(time.time()) if now is None else now
        expires_at = issued_at + self._config.ttl_seconds

        get_url = self._signed_url(
            self._claims(record, subject, record.real_storage_id, METHOD_GET, issued_at, expires_at)
        )

        put_url = ""
        if subject == record.owner and not record.is_link:
            put_url = self._signed_url(
                self._claims(record, subject, record.storage_id, METHOD_PUT, issued_at, expires_at)
            )

        return ObjectWithAccess(
            record=record,
            signed_get_url=get_url,
            signed_put_url=put_url,
            now=issued_at,
            expire_time=expires_at,
        )

    def _claims(
        self,
        record: ObjectRecord,
        subject: str,
        audience: str,
        method: str,
        issued_at: int,
        expires_at: int,
    ) -> ObjectAccessClaims:
        return ObjectAccessClaims(
            iss=self._config.issuer_url,
            sub=subject,
            aud=audience,
            iat=issued_at,
            exp=expires_at,
            method=method,
            size=record.size,
            sha=record.sha,
            disposition_name=record.object_name,
        )

    def _signed_url(self, claims: ObjectAccessClaims) -> str:
        token = self._signer.sign(claims)
        return f"{self._config.public_url}{LOCAL_S3_PATH}/{token}"
