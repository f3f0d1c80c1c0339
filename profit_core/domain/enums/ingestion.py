"""
Ingestion enums.

Status values for idempotency tracking and event routing.
"""
from enum import Enum


class OrderSource(str, Enum):
    """Entry point an order arrived through."""

    WEBHOOK = "webhook"
    SYNC = "sync"
    MANUAL = "manual"


class IdempotencyStatus(str, Enum):
    """Outcome recorded for an external event."""

    PROCESSED = "processed"
    FAILED = "failed"
    SKIPPED = "skipped"


class WarningSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class WebhookTopic(str, Enum):
    """Webhook topics the ingestion pipeline understands."""

    ORDERS_CREATE = "orders/create"
    ORDERS_UPDATED = "orders/updated"
    ORDERS_PAID = "orders/paid"
    ORDERS_CANCELLED = "orders/cancelled"
    ORDERS_FULFILLED = "orders/fulfilled"
    REFUNDS_CREATE = "refunds/create"

    @property
    def is_order_topic(self) -> bool:
        return self.value.startswith("orders/")
