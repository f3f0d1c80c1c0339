"""Application DTOs."""

from .order_event import (
    LineItemEvent,
    OrderEvent,
    RefundEvent,
    RefundLineEvent,
    TransactionEvent,
    parse_event,
)

__all__ = [
    "LineItemEvent",
    "OrderEvent",
    "RefundEvent",
    "RefundLineEvent",
    "TransactionEvent",
    "parse_event",
]
