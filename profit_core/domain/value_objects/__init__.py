"""Domain value objects."""

from .identifiers import ExecutionID, new_entity_id
from .timestamps import utc_now, ensure_utc
from .numeric import (
    ZERO,
    ONE_HUNDRED,
    to_decimal,
    round_currency,
    round_percentage,
    safe_divide,
    safe_margin,
    safe_percentage,
    sum_decimals,
)

__all__ = [
    "ExecutionID",
    "new_entity_id",
    "utc_now",
    "ensure_utc",
    "ZERO",
    "ONE_HUNDRED",
    "to_decimal",
    "round_currency",
    "round_percentage",
    "safe_divide",
    "safe_margin",
    "safe_percentage",
    "sum_decimals",
]
