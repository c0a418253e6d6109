"""Storage identity derivation.

A storage id is the hex SHA-256 of ``"<owner>/<hex sha>"``. It is stable for a
given (owner, content hash) pair, so SDK clients can compute it offline, and
two owners holding the same bytes always get different storage ids.
"""

from __future__ import annotations

import hashlib
import re

from objecthub.services.objects.errors import InvalidShaError

SHA256_DIGEST_SIZE = 32

_HEX_PATTERN = re.compile(r"[0-9a-fA-F]*")


def decode_sha256_hex(value: str) -> bytes:
    """Decode a hex content hash and require exactly 32 bytes.

    Args:
        value: Hex-encoded SHA-256 digest (either case).

    Returns:
        The 32 raw digest bytes.

    Raises:
        InvalidShaError: If the value is empty, not hex, or not 32 bytes long.
    """
    if not value:
        raise InvalidShaError(value, "sha256 must not be empty")

    if not _HEX_PATTERN.fullmatch(value) or len(value) % 2 != 0:
        raise InvalidShaError(value, "sha256 is not a valid hex string")

    raw = bytes.fromhex(value)
    if len(raw) != SHA256_DIGEST_SIZE:
        raise InvalidShaError(
            value, f"sha256 must decode to {SHA256_DIGEST_SIZE} bytes, got {len(raw)}"
        )
    return raw


def make_storage_id(owner: str, sha: bytes) -> str:
    """Derive the owner-scoped storage id for a decoded content hash."""
    key = f"{owner}/{sha.hex()}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def storage_id_for(owner: str, sha_hex: str) -> str:
    """Validate a hex content hash and derive its storage id for owner."""
    return make_storage_id(owner, decode_sha256_hex(sha_hex))


def canonical_sha(sha_hex: str) -> str:
    """Validate a hex content hash and return it in lowercase form."""
    return decode_sha256_hex(sha_hex).hex()
