"""
Tests for decimal coercion and safe arithmetic.

Every ledger amount passes through these helpers, so NaN, infinity and
binary float noise must never leak into a result.
"""
from decimal import Decimal

import pytest

from profit_core.domain.exceptions import NumericCoercionError
from profit_core.domain.value_objects import (
    round_currency,
    round_percentage,
    safe_divide,
    safe_margin,
    safe_percentage,
    sum_decimals,
    to_decimal,
)


class TestToDecimal:
    """Coercion of raw platform values."""

    def test_float_goes_through_str(self):
        assert to_decimal(79.2) == Decimal("79.2")

    def test_none_and_blank_are_zero(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal("  ") == Decimal("0")

    def test_numeric_string(self):
        assert to_decimal(" 1079.20 ") == Decimal("1079.20")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", float("inf"), True, object()])
    def test_rejects_non_finite_and_non_numeric(self, value):
        with pytest.raises(NumericCoercionError):
            to_decimal(value)

    def test_coercion_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            to_decimal("twelve")


class TestRounding:

    def test_currency_rounds_half_up(self):
        assert round_currency(Decimal("31.3968")) == Decimal("31.40")
        assert round_currency(Decimal("0.005")) == Decimal("0.01")

    def test_percentage_keeps_four_places(self):
        assert round_percentage(Decimal("71.123456")) == Decimal("71.1235")


class TestSafeArithmetic:
    """Division helpers never raise on zero and never return NaN."""

    def test_safe_divide_by_zero_returns_default(self):
        assert safe_divide(10, 0) == Decimal("0")
        assert safe_divide(10, 0, default=Decimal("-1")) == Decimal("-1")

    def test_margin_is_zero_without_revenue(self):
        assert safe_margin(Decimal("-50"), Decimal("0")) == Decimal("0")
        assert safe_margin(Decimal("50"), Decimal("-10")) == Decimal("0")

    def test_negative_margin_is_not_clamped(self):
        assert safe_margin(Decimal("-200"), Decimal("800")) == Decimal("-25.0000")

    def test_percentage_of_zero_whole(self):
        assert safe_percentage(3, 0) == Decimal("0")

    def test_sum_starts_from_decimal_zero(self):
        total = sum_decimals([])
        assert total == Decimal("0")
        assert isinstance(total, Decimal)
        assert sum_decimals(["1.10", 2, None]) == Decimal("3.10")
