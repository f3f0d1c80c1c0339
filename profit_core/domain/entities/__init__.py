"""Domain entities."""

from .order import Order, LineItem, Transaction, Refund, RefundLineItem
from .catalog import Store, Variant, COGSEntry
from .cost_config import PaymentFeeConfig, ShippingTier, CostEntry
from .idempotency import IdempotencyRecord

__all__ = [
    "Order",
    "LineItem",
    "Transaction",
    "Refund",
    "RefundLineItem",
    "Store",
    "Variant",
    "COGSEntry",
    "PaymentFeeConfig",
    "ShippingTier",
    "CostEntry",
    "IdempotencyRecord",
]
