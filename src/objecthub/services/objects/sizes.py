"""Size normalization for object records.

Clients may send the size as a decimal string, as an integer, or both.
The integer wins when it is non-zero; otherwise the string is parsed.
"""

from __future__ import annotations

from objecthub.services.objects.errors import ObjectValidationError


def normalize_size(size: str | int | None, size_int: int | None) -> int:
    """Reduce the two wire size fields to one authoritative byte count.

    Args:
        size: The ``size`` wire field (decimal string, int, or missing).
        size_int: The ``sizeint`` wire field.

    Returns:
        Non-negative size in bytes. Both fields empty means 0.

    Raises:
        ObjectValidationError: If the size is negative, or the string is not
            a base-10 integer while ``size_int`` is zero.
    """
    if size_int:
        if size_int < 0:
            raise ObjectValidationError(f"sizeint must not be negative: {size_int}")
        return size_int

    if isinstance(size, int):
        value = size
    else:
        text = (size or "").strip()
        if not text:
            return 0
        try:
            value = int(text, 10)
        except ValueError as e:
            raise ObjectValidationError(f"size is not an integer: {size!r}") from e

    if value < 0:
        raise ObjectValidationError(f"size must not be negative: {value}")
    return value
