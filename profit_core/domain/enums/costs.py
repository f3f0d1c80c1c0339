"""
Cost classification enums.

Closed sets so calculation branches stay exhaustive.
"""
from enum import Enum


class COGSSource(str, Enum):
    """Where a unit cost came from."""

    MANUAL = "manual"
    IMPORT = "import"
    PLATFORM_REPORTED = "platform_reported"
    API = "api"
    FALLBACK = "fallback"
    MISSING = "missing"

    @property
    def is_exact(self) -> bool:
        """True when the cost is a real catalog value, not a guess."""
        return self not in (COGSSource.FALLBACK, COGSSource.MISSING)


class FeeType(str, Enum):
    """How a payment processing fee is computed."""

    PERCENTAGE_ONLY = "percentage_only"
    FIXED_ONLY = "fixed_only"
    PERCENTAGE_PLUS_FIXED = "percentage_plus_fixed"


class FeeSource(str, Enum):
    """Provenance of a transaction's stored fee."""

    PLATFORM_REPORTED = "platform_reported"
    CALCULATED = "calculated"
    NOT_APPLICABLE = "not_applicable"


class RefundCOGSPrecision(str, Enum):
    """How a refund's reversed COGS was derived."""

    LINE_ITEM = "line_item"
    PROPORTIONAL = "proportional"
    NONE = "none"


class CostType(str, Enum):
    """Custom operating cost classification."""

    FIXED = "fixed"
    VARIABLE = "variable"
    SALARY = "salary"
    ONE_TIME = "one_time"


class RecurrenceType(str, Enum):
    MONTHLY = "monthly"
    NONE = "none"
