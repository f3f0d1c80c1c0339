"""
Order and transaction status enums.

Values match the lowercase strings the retail platform sends.
"""
from enum import Enum
from typing import Optional


def _match_or(enum_cls, value, fallback):
    """Case-insensitive member lookup; other strings map to `fallback`."""
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    for member in enum_cls:
        if member.value == normalized:
            return member
    return fallback


class FinancialStatus(str, Enum):
    """Payment state of an order."""

    PENDING = "pending"
    AUTHORIZED = "authorized"
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"
    VOIDED = "voided"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["FinancialStatus"]:
        """Map a raw status string to the enum; unknown or empty -> None."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class TransactionKind(str, Enum):
    """Payment gateway event kind. Kinds this ledger does not know become OTHER."""

    SALE = "sale"
    CAPTURE = "capture"
    AUTHORIZATION = "authorization"
    VOID = "void"
    REFUND = "refund"
    CHANGE = "change"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value):
        return _match_or(cls, value, cls.OTHER)


class TransactionStatus(str, Enum):
    """Gateway outcome of a transaction. Unrecognized outcomes become UNKNOWN."""

    SUCCESS = "success"
    PENDING = "pending"
    FAILURE = "failure"
    ERROR = "error"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        return _match_or(cls, value, cls.UNKNOWN)


# Only these kinds move money into the store and incur a processing fee
FEE_ELIGIBLE_KINDS = frozenset({TransactionKind.SALE, TransactionKind.CAPTURE})
