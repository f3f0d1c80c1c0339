"""
Decimal and rounding utilities.

Every monetary value in the ledger flows through these helpers.

CRITICAL: This file must contain ZERO imports from:
- sqlalchemy
- pydantic
- fastapi
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from profit_core.domain.exceptions import NumericCoercionError


ZERO = Decimal("0")
ONE_HUNDRED = Decimal("100")

CURRENCY_QUANTUM = Decimal("0.01")
PERCENTAGE_QUANTUM = Decimal("0.0001")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a raw value into a finite Decimal.

    None is treated as zero (absent monetary fields are zero).
    Floats go through str() so 79.2 becomes Decimal("79.2"), not its
    binary expansion.

    Raises:
        NumericCoercionError: bools, NaN, infinities and non-numeric text
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise NumericCoercionError(f"Boolean is not a numeric amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return ZERO
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise NumericCoercionError(f"Not a numeric amount: {value!r}") from None
    else:
        raise NumericCoercionError(
            f"Unsupported numeric type {type(value).__name__}: {value!r}"
        )

    if not result.is_finite():
        raise NumericCoercionError(f"Amount must be finite: {value!r}")
    return result


def round_currency(value: Any) -> Decimal:
    """Round to 2 decimal places (half-up, as on a receipt)."""
    return to_decimal(value).quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_UP)


def round_percentage(value: Any) -> Decimal:
    """Round a ratio or percentage to 4 decimal places."""
    return to_decimal(value).quantize(PERCENTAGE_QUANTUM, rounding=ROUND_HALF_UP)


def safe_divide(numerator: Any, denominator: Any, default: Decimal = ZERO) -> Decimal:
    """Divide, returning `default` instead of raising when the denominator is zero."""
    denominator = to_decimal(denominator)
    if denominator == ZERO:
        return default
    return to_decimal(numerator) / denominator


def safe_margin(profit: Any, revenue: Any) -> Decimal:
    """
    Profit margin in percent.

    Returns 0 when revenue is zero or negative, for any profit value
    (including negative profit). Never NaN or infinity.
    """
    revenue = to_decimal(revenue)
    if revenue <= ZERO:
        return ZERO
    return round_percentage(to_decimal(profit) / revenue * ONE_HUNDRED)


def safe_percentage(part: Any, whole: Any) -> Decimal:
    """`part` as a percentage of `whole`; 0 when `whole` is zero."""
    return round_percentage(safe_divide(part, whole) * ONE_HUNDRED)


def sum_decimals(values) -> Decimal:
    """Sum an iterable of amounts, starting from Decimal zero."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total
