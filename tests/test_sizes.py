"""Tests for size normalization of the size / sizeint wire fields."""

from __future__ import annotations

import pytest

from objecthub.services.objects.errors import ObjectValidationError
from objecthub.services.objects.sizes import normalize_size


class TestNormalizeSize:
    def test_sizeint_wins_when_non_zero(self) -> None:
        assert normalize_size("10", 5) == 5

    def test_string_used_when_sizeint_zero(self) -> None:
        assert normalize_size("1024", 0) == 1024

    def test_string_used_when_sizeint_missing(self) -> None:
        assert normalize_size("7", None) == 7

    def test_int_size_accepted(self) -> None:
        assert normalize_size(42, None) == 42

    def test_both_empty_is_zero(self) -> None:
        assert normalize_size(None, None) == 0
        assert normalize_size("", 0) == 0

    def test_surrounding_whitespace_ignored(self) -> None:
        assert normalize_size(" 12 ", None) == 12

    @pytest.mark.parametrize("value", ["abc", "1.5", "0x10", "12kb"])
    def test_non_integer_string_rejected(self, value: str) -> None:
        with pytest.raises(ObjectValidationError):
            normalize_size(value, 0)

    def test_bad_string_ignored_when_sizeint_given(self) -> None:
        """The string is only parsed when sizeint is zero."""
        assert normalize_size("abc", 3) == 3

    def test_negative_string_rejected(self) -> None:
        with pytest.raises(ObjectValidationError):
            normalize_size("-1", None)

    def test_negative_sizeint_rejected(self) -> None:
        with pytest.raises(ObjectValidationError):
            normalize_size(None, -5)
