"""Application use cases."""

from .ingest_order import (
    BatchIngestResult,
    BatchItemError,
    IngestOrderResult,
    OrderReconciler,
    UnitOfWorkFactory,
)
from .apply_refund import (
    ApplyRefundResult,
    OrderTotals,
    RefundReconciler,
    SyncRefundsResult,
)

from .summarize_profit import ProfitSummaryQuery, SummarizeProfitRequest

__all__ = [
    "BatchIngestResult",
    "BatchItemError",
    "IngestOrderResult",
    "OrderReconciler",
    "UnitOfWorkFactory",
    "ApplyRefundResult",
    "OrderTotals",
    "RefundReconciler",
    "SyncRefundsResult",
    "ProfitSummaryQuery",
    "SummarizeProfitRequest",
]
