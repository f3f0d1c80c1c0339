"""
SQLAlchemy ORM Models.

Maps ledger entities to database tables.

Ids are uuid strings so the same schema runs on PostgreSQL and on
SQLite in tests. Money is Numeric(15, 2); fee rates keep six decimals,
margins four.
"""
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from profit_core.domain.value_objects import utc_now


Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


# =============================================================================
# STORE & CATALOG
# =============================================================================

class StoreModel(Base):
    __tablename__ = "stores"

    id = Column(String(36), primary_key=True, default=_uuid)
    domain = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    currency = Column(String(3), nullable=False, default="SEK")
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    def __repr__(self):
        return f"<StoreModel(id={self.id}, domain={self.domain})>"


class VariantModel(Base):
    __tablename__ = "variants"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    external_variant_id = Column(String(255), nullable=False)
    title = Column(String(500), nullable=True)
    sku = Column(String(255), nullable=True, index=True)
    requires_shipping = Column(Boolean, nullable=False, default=True)

    cogs_entries = relationship(
        "COGSEntryModel", back_populates="variant", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("store_id", "external_variant_id", name="uq_variants_store_external"),
    )


class COGSEntryModel(Base):
    """
    Unit cost timeline of a variant.

    effective_to NULL means currently active.
    """

    __tablename__ = "cogs_entries"

    id = Column(String(36), primary_key=True, default=_uuid)
    variant_id = Column(String(36), ForeignKey("variants.id"), nullable=False, index=True)
    cost_price = Column(Numeric(15, 2), nullable=False)
    effective_from = Column(DateTime(timezone=True), nullable=False)
    effective_to = Column(DateTime(timezone=True), nullable=True)
    source = Column(String(50), nullable=False, default="manual")

    variant = relationship("VariantModel", back_populates="cogs_entries")

    __table_args__ = (
        Index("ix_cogs_entries_variant_effective", "variant_id", "effective_from"),
    )


# =============================================================================
# COST CONFIGURATION
# =============================================================================

class PaymentFeeConfigModel(Base):
    __tablename__ = "payment_fee_configs"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    gateway = Column(String(100), nullable=False)
    fee_type = Column(String(50), nullable=False, default="percentage_plus_fixed")
    percentage_rate = Column(Numeric(8, 6), nullable=False, default=0)
    fixed_fee = Column(Numeric(15, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


class ShippingTierModel(Base):
    __tablename__ = "shipping_tiers"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    min_items = Column(Integer, nullable=False)
    max_items = Column(Integer, nullable=True)
    cost = Column(Numeric(15, 2), nullable=False)
    cost_per_additional_item = Column(Numeric(15, 2), nullable=False, default=0)
    zone = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class CostEntryModel(Base):
    __tablename__ = "cost_entries"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    cost_type = Column(String(50), nullable=False)
    recurrence = Column(String(50), nullable=False, default="none")
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


# =============================================================================
# ORDER MODEL
# =============================================================================

class OrderModel(Base):
    """
    Order database model.

    Derived profit columns are rewritten on every ingestion.
    """

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    external_order_id = Column(String(255), nullable=False)
    order_number = Column(String(100), nullable=True)
    currency = Column(String(3), nullable=False)
    financial_status = Column(String(50), nullable=True, index=True)
    source = Column(String(20), nullable=False, default="sync")

    subtotal_price = Column(Numeric(15, 2), nullable=False, default=0)
    total_discounts = Column(Numeric(15, 2), nullable=False, default=0)
    total_shipping_price = Column(Numeric(15, 2), nullable=False, default=0)
    total_tax = Column(Numeric(15, 2), nullable=False, default=0)
    total_price = Column(Numeric(15, 2), nullable=False, default=0)
    shipping_country = Column(String(2), nullable=True)

    # Derived
    total_cogs = Column(Numeric(15, 2), nullable=False, default=0)
    total_cogs_reversed = Column(Numeric(15, 2), nullable=False, default=0)
    total_payment_fees = Column(Numeric(15, 2), nullable=False, default=0)
    total_shipping_cost = Column(Numeric(15, 2), nullable=False, default=0)
    total_refund_amount = Column(Numeric(15, 2), nullable=False, default=0)
    gross_profit = Column(Numeric(15, 2), nullable=False, default=0)
    net_profit = Column(Numeric(15, 2), nullable=False, default=0)
    profit_margin = Column(Numeric(9, 4), nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    platform_updated_at = Column(DateTime(timezone=True), nullable=True)
    ingested_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    line_items = relationship(
        "LineItemModel", back_populates="order", cascade="all, delete-orphan"
    )
    transactions = relationship(
        "TransactionModel", back_populates="order", cascade="all, delete-orphan"
    )
    refunds = relationship("RefundModel", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("store_id", "external_order_id", name="uq_orders_store_external"),
        Index("ix_orders_store_created", "store_id", "created_at"),
    )

    def __repr__(self):
        return f"<OrderModel(id={self.id}, external_order_id={self.external_order_id})>"


class LineItemModel(Base):
    __tablename__ = "line_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    external_line_item_id = Column(String(255), nullable=False)
    variant_id = Column(String(36), ForeignKey("variants.id"), nullable=True, index=True)
    external_variant_id = Column(String(255), nullable=True)
    title = Column(String(500), nullable=True)
    sku = Column(String(255), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    total_discount = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    requires_shipping = Column(Boolean, nullable=False, default=True)

    # COGS snapshot
    unit_cogs = Column(Numeric(15, 2), nullable=False, default=0)
    total_cogs = Column(Numeric(15, 2), nullable=False, default=0)
    cogs_source = Column(String(50), nullable=False, default="missing")
    cogs_matched = Column(Boolean, nullable=False, default=False)

    order = relationship("OrderModel", back_populates="line_items")


class TransactionModel(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    external_transaction_id = Column(String(255), nullable=False)
    kind = Column(String(50), nullable=False)
    status = Column(String(50), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    gateway = Column(String(100), nullable=True)
    reported_fee = Column(Numeric(15, 2), nullable=True)
    payment_fee = Column(Numeric(15, 2), nullable=False, default=0)
    fee_source = Column(String(50), nullable=False, default="not_applicable")
    processed_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("OrderModel", back_populates="transactions")


class RefundModel(Base):
    __tablename__ = "refunds"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    external_refund_id = Column(String(255), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    note = Column(Text, nullable=True)
    restock = Column(Boolean, nullable=False, default=False)
    total_cogs_reversed = Column(Numeric(15, 2), nullable=False, default=0)
    cogs_precision = Column(String(20), nullable=False, default="none")
    processed_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("OrderModel", back_populates="refunds")
    line_items = relationship(
        "RefundLineItemModel", back_populates="refund", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("order_id", "external_refund_id", name="uq_refunds_order_external"),
    )


class RefundLineItemModel(Base):
    __tablename__ = "refund_line_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    refund_id = Column(String(36), ForeignKey("refunds.id"), nullable=False, index=True)
    external_line_item_id = Column(String(255), nullable=False)
    line_item_id = Column(String(36), nullable=True)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    unit_cogs = Column(Numeric(15, 2), nullable=False, default=0)
    total_cogs = Column(Numeric(15, 2), nullable=False, default=0)

    refund = relationship("RefundModel", back_populates="line_items")


# =============================================================================
# IDEMPOTENCY LEDGER
# =============================================================================

class IdempotencyRecordModel(Base):
    __tablename__ = "webhook_events"

    event_id = Column(String(64), primary_key=True)
    status = Column(String(20), nullable=False)
    topic = Column(String(100), nullable=True)
    store_id = Column(String(36), nullable=True)
    error = Column(Text, nullable=True)
    recorded_at = Column(DateTime(timezone=True), nullable=False, index=True)
