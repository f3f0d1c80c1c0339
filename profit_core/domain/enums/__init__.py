"""Domain enums."""

from .order_status import (
    FinancialStatus,
    TransactionKind,
    TransactionStatus,
    FEE_ELIGIBLE_KINDS,
)
from .costs import (
    COGSSource,
    FeeType,
    FeeSource,
    RefundCOGSPrecision,
    CostType,
    RecurrenceType,
)
from .ingestion import (
    OrderSource,
    IdempotencyStatus,
    WarningSeverity,
    WebhookTopic,
)

__all__ = [
    "FinancialStatus",
    "TransactionKind",
    "TransactionStatus",
    "FEE_ELIGIBLE_KINDS",
    "COGSSource",
    "FeeType",
    "FeeSource",
    "RefundCOGSPrecision",
    "CostType",
    "RecurrenceType",
    "OrderSource",
    "IdempotencyStatus",
    "WarningSeverity",
    "WebhookTopic",
]
