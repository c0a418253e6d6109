"""Object service error types.

Client-facing failures (validation, no access, quota) are kept distinct from
downstream failures (metadata store, quota source, token signing) so the API
layer can map each family to its own status code. The resolver signals
(not found, no backing file, no link target) are consumed by the service and
never surface to a client as-is.
"""

from __future__ import annotations


class ObjectServiceError(Exception):
    """Base exception for object service operations.

    Attributes:
        message: Human-readable error message.
        owner: Owner associated with the operation (if applicable).
        sha: Content hash associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        owner: str | None = None,
        sha: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.owner = owner
        self.sha = sha

    def __str__(self) -> str:
        parts = [self.message]
        if self.owner:
            parts.append(f"owner={self.owner}")
        if self.sha:
            parts.append(f"sha={self.sha}")
        return " ".join(parts)


class ObjectValidationError(ObjectServiceError):
    """Raised when a request is malformed or contradicts the stored record."""


class InvalidShaError(ObjectValidationError):
    """Raised when a content hash is not 64 hex characters (32 bytes)."""

    def __init__(self, value: str, message: str = "Invalid sha256 hex string") -> None:
        super().__init__(message)
        self.value = value


class ObjectAccessDeniedError(ObjectServiceError):
    """Raised when the caller may not see the record.

    Covers both "does not exist" and "owned by someone else" so record
    existence is not disclosed across owners.
    """

    def __init__(
        self,
        message: str = "No access",
        *,
        owner: str | None = None,
        sha: str | None = None,
    ) -> None:
        super().__init__(message, owner=owner, sha=sha)


class ObjectNotFoundError(ObjectServiceError):
    """Raised by the link resolver when the owner has no live record."""

    def __init__(
        self,
        message: str = "Object not found",
        *,
        owner: str | None = None,
        sha: str | None = None,
    ) -> None:
        super().__init__(message, owner=owner, sha=sha)


class NoBackingFileError(ObjectServiceError):
    """Raised when a content-owning record has no bytes in the storage backend."""

    def __init__(
        self,
        message: str = "No backing file",
        *,
        owner: str | None = None,
        sha: str | None = None,
        storage_id: str | None = None,
    ) -> None:
        super().__init__(message, owner=owner, sha=sha)
        self.storage_id = storage_id


class NoLinkTargetError(ObjectServiceError):
    """Raised when no other owner holds backed content for the hash."""

    def __init__(
        self,
        message: str = "No link target available",
        *,
        owner: str | None = None,
        sha: str | None = None,
    ) -> None:
        super().__init__(message, owner=owner, sha=sha)


class QuotaExceededError(ObjectServiceError):
    """Raised when a write would push the owner's usage over their quota."""

    def __init__(self, owner: str, usage: int, quota: int) -> None:
        super().__init__(
            f"Quota exceeded: usage {usage} bytes over quota {quota} bytes",
            owner=owner,
        )
        self.usage = usage
        self.quota = quota


class QuotaSourceError(ObjectServiceError):
    """Raised when the owner's quota cannot be determined."""

    def __init__(
        self,
        message: str = "Quota source unavailable",
        *,
        owner: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, owner=owner)
        self.cause = cause


class TokenSigningError(ObjectServiceError):
    """Raised when an access token cannot be signed."""


class InvalidObjectTokenError(ObjectServiceError):
    """Raised when a presented access token is malformed, forged or expired."""
