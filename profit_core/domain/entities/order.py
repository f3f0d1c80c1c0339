"""
Order aggregate root.

An Order exclusively owns its line items, transactions and refunds.
Derived profit fields are always recomputed from those children,
never incremented.

CRITICAL: This file must contain ZERO imports from:
- sqlalchemy
- pydantic
- fastapi
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from ..enums import (
    COGSSource,
    FEE_ELIGIBLE_KINDS,
    FeeSource,
    FinancialStatus,
    OrderSource,
    RefundCOGSPrecision,
    TransactionKind,
    TransactionStatus,
)
from ..value_objects import ZERO, new_entity_id


@dataclass
class LineItem:
    """
    One purchased line.

    unit_cogs / total_cogs / cogs_source are a snapshot taken at ingestion,
    resolved at the order's creation time. They are not a live reference
    to the catalog.
    """
    external_line_item_id: str
    quantity: int
    unit_price: Decimal
    title: Optional[str] = None
    sku: Optional[str] = None
    variant_id: Optional[str] = None
    external_variant_id: Optional[str] = None
    total_discount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    requires_shipping: bool = True

    # COGS snapshot
    unit_cogs: Decimal = ZERO
    total_cogs: Decimal = ZERO
    cogs_source: COGSSource = COGSSource.MISSING
    cogs_matched: bool = False

    id: str = field(default_factory=new_entity_id)

    @property
    def line_total(self) -> Decimal:
        """Price charged for this line after its own discount."""
        return self.unit_price * self.quantity - self.total_discount


@dataclass
class Transaction:
    """One payment gateway event on an order."""
    external_transaction_id: str
    kind: TransactionKind
    status: TransactionStatus
    amount: Decimal
    gateway: Optional[str] = None
    reported_fee: Optional[Decimal] = None  # authoritative when present
    processed_at: Optional[datetime] = None

    # Resolved at ingestion
    payment_fee: Decimal = ZERO
    fee_source: FeeSource = FeeSource.NOT_APPLICABLE

    id: str = field(default_factory=new_entity_id)

    @property
    def is_fee_eligible(self) -> bool:
        return self.kind in FEE_ELIGIBLE_KINDS and self.status == TransactionStatus.SUCCESS


@dataclass
class RefundLineItem:
    """Refunded quantity of one original line item."""
    external_line_item_id: str
    quantity: int
    subtotal: Decimal = ZERO
    line_item_id: Optional[str] = None
    unit_cogs: Decimal = ZERO  # copied from the original line's snapshot
    total_cogs: Decimal = ZERO


@dataclass
class Refund:
    """
    Refund record.

    `amount` is authoritative. The order's refund total is always the sum
    of these records.
    """
    external_refund_id: str
    amount: Decimal
    processed_at: Optional[datetime] = None
    note: Optional[str] = None
    restock: bool = False
    line_items: List[RefundLineItem] = field(default_factory=list)
    total_cogs_reversed: Decimal = ZERO
    cogs_precision: RefundCOGSPrecision = RefundCOGSPrecision.NONE

    id: str = field(default_factory=new_entity_id)


@dataclass
class Order:
    """
    Order aggregate root.

    Natural key is (store_id, external_order_id).
    All monetary fields are tax-inclusive, in the store's currency.
    """
    store_id: str
    external_order_id: str
    created_at: datetime
    order_number: Optional[str] = None
    currency: str = "SEK"
    financial_status: Optional[FinancialStatus] = None

    # Monetary facts from the platform
    subtotal_price: Decimal = ZERO
    total_discounts: Decimal = ZERO
    total_shipping_price: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_price: Decimal = ZERO

    shipping_country: Optional[str] = None
    source: OrderSource = OrderSource.SYNC

    processed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    platform_updated_at: Optional[datetime] = None

    line_items: List[LineItem] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    refunds: List[Refund] = field(default_factory=list)

    # Derived (recomputed, never incremented)
    total_cogs: Decimal = ZERO
    total_cogs_reversed: Decimal = ZERO
    total_payment_fees: Decimal = ZERO
    total_shipping_cost: Decimal = ZERO
    total_refund_amount: Decimal = ZERO
    gross_profit: Decimal = ZERO
    net_profit: Decimal = ZERO
    profit_margin: Decimal = ZERO

    id: str = field(default_factory=new_entity_id)
    ingested_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.store_id, self.external_order_id)

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None

    @property
    def has_refunds(self) -> bool:
        return bool(self.refunds) or self.total_refund_amount > ZERO

    @property
    def physical_item_count(self) -> int:
        """Units that ship; digital and shipping-exempt lines are excluded."""
        return sum(item.quantity for item in self.line_items if item.requires_shipping)

    def find_line_item(self, external_line_item_id: str) -> Optional[LineItem]:
        for item in self.line_items:
            if item.external_line_item_id == external_line_item_id:
                return item
        return None

    def find_refund(self, external_refund_id: str) -> Optional[Refund]:
        for refund in self.refunds:
            if refund.external_refund_id == external_refund_id:
                return refund
        return None

    def __repr__(self) -> str:
        return (
            f"<Order store={self.store_id} external_id={self.external_order_id} "
            f"net_profit={self.net_profit}>"
        )
