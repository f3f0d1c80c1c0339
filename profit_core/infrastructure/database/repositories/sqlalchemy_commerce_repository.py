"""
SQLAlchemy Commerce Repository Implementation.

Implements CommerceRepository using SQLAlchemy (PostgreSQL in production,
SQLite in tests).

Children are replaced by merging on internal id: rows whose id is kept
are updated in place, rows no longer present are deleted as orphans.
Commit is handled by the unit of work.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from profit_core.domain.entities import (
    COGSEntry,
    CostEntry,
    IdempotencyRecord,
    LineItem,
    Order,
    PaymentFeeConfig,
    Refund,
    RefundLineItem,
    ShippingTier,
    Store,
    Transaction,
    Variant,
)
from profit_core.domain.enums import (
    COGSSource,
    CostType,
    FeeSource,
    FeeType,
    FinancialStatus,
    IdempotencyStatus,
    OrderSource,
    RecurrenceType,
    RefundCOGSPrecision,
    TransactionKind,
    TransactionStatus,
)
from profit_core.domain.exceptions import ConcurrencyConflictError
from profit_core.domain.repositories import CommerceRepository
from profit_core.domain.value_objects import ensure_utc
from profit_core.infrastructure.database.models import (
    COGSEntryModel,
    CostEntryModel,
    IdempotencyRecordModel,
    LineItemModel,
    OrderModel,
    PaymentFeeConfigModel,
    RefundLineItemModel,
    RefundModel,
    ShippingTierModel,
    StoreModel,
    TransactionModel,
    VariantModel,
)


logger = logging.getLogger(__name__)


_ORDER_SCALARS = (
    "order_number",
    "currency",
    "subtotal_price",
    "total_discounts",
    "total_shipping_price",
    "total_tax",
    "total_price",
    "shipping_country",
    "total_cogs",
    "total_cogs_reversed",
    "total_payment_fees",
    "total_shipping_cost",
    "total_refund_amount",
    "gross_profit",
    "net_profit",
    "profit_margin",
    "created_at",
    "processed_at",
    "cancelled_at",
    "platform_updated_at",
    "ingested_at",
)


def _order_options():
    return (
        selectinload(OrderModel.line_items),
        selectinload(OrderModel.transactions),
        selectinload(OrderModel.refunds).selectinload(RefundModel.line_items),
    )


class SQLAlchemyCommerceRepository(CommerceRepository):
    """
    SQLAlchemy implementation of CommerceRepository.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session
        self._order_models: Dict[str, OrderModel] = {}

    # =========================================================================
    # STORES & CATALOG
    # =========================================================================

    async def find_store(self, store_id: str) -> Optional[Store]:
        model = await self.session.get(StoreModel, store_id)
        return self._to_store(model) if model else None

    async def find_store_by_domain(self, domain: str) -> Optional[Store]:
        result = await self.session.execute(
            select(StoreModel).where(StoreModel.domain == domain.strip().lower())
        )
        model = result.scalar_one_or_none()
        return self._to_store(model) if model else None

    async def find_variants_by_external_ids(
        self, store_id: str, external_variant_ids: Iterable[str]
    ) -> Dict[str, Variant]:
        ids = list(set(external_variant_ids))
        if not ids:
            return {}
        result = await self.session.execute(
            select(VariantModel).where(
                VariantModel.store_id == store_id,
                VariantModel.external_variant_id.in_(ids),
            )
        )
        return {
            m.external_variant_id: Variant(
                id=m.id,
                store_id=m.store_id,
                external_variant_id=m.external_variant_id,
                title=m.title,
                sku=m.sku,
                requires_shipping=m.requires_shipping,
            )
            for m in result.scalars().all()
        }

    async def find_cogs_entries(self, variant_id: str) -> List[COGSEntry]:
        entries = await self.find_cogs_entries_for_variants([variant_id])
        return entries[variant_id]

    async def find_cogs_entries_for_variants(
        self, variant_ids: Iterable[str]
    ) -> Dict[str, List[COGSEntry]]:
        ids = list(set(variant_ids))
        grouped: Dict[str, List[COGSEntry]] = {variant_id: [] for variant_id in ids}
        if not ids:
            return grouped
        result = await self.session.execute(
            select(COGSEntryModel)
            .where(COGSEntryModel.variant_id.in_(ids))
            .order_by(COGSEntryModel.variant_id, COGSEntryModel.effective_from)
        )
        for m in result.scalars().all():
            grouped[m.variant_id].append(
                COGSEntry(
                    id=m.id,
                    variant_id=m.variant_id,
                    cost_price=m.cost_price,
                    effective_from=m.effective_from,
                    effective_to=m.effective_to,
                    source=COGSSource(m.source),
                )
            )
        return grouped

    async def find_active_fee_configs(self, store_id: str) -> List[PaymentFeeConfig]:
        result = await self.session.execute(
            select(PaymentFeeConfigModel).where(
                PaymentFeeConfigModel.store_id == store_id,
                PaymentFeeConfigModel.is_active.is_(True),
            )
        )
        return [
            PaymentFeeConfig(
                id=m.id,
                store_id=m.store_id,
                gateway=m.gateway,
                fee_type=FeeType(m.fee_type),
                percentage_rate=m.percentage_rate,
                fixed_fee=m.fixed_fee,
                is_active=m.is_active,
            )
            for m in result.scalars().all()
        ]

    async def find_active_shipping_tiers(self, store_id: str) -> List[ShippingTier]:
        result = await self.session.execute(
            select(ShippingTierModel)
            .where(
                ShippingTierModel.store_id == store_id,
                ShippingTierModel.is_active.is_(True),
            )
            .order_by(ShippingTierModel.min_items)
        )
        return [
            ShippingTier(
                id=m.id,
                store_id=m.store_id,
                min_items=m.min_items,
                max_items=m.max_items,
                cost=m.cost,
                cost_per_additional_item=m.cost_per_additional_item,
                zone=m.zone,
                is_active=m.is_active,
            )
            for m in result.scalars().all()
        ]

    async def find_cost_entries(self, store_id: str) -> List[CostEntry]:
        result = await self.session.execute(
            select(CostEntryModel).where(
                CostEntryModel.store_id == store_id,
                CostEntryModel.is_active.is_(True),
            )
        )
        return [
            CostEntry(
                id=m.id,
                store_id=m.store_id,
                name=m.name,
                amount=m.amount,
                cost_type=CostType(m.cost_type),
                recurrence=RecurrenceType(m.recurrence),
                start_date=m.start_date,
                end_date=m.end_date,
                is_active=m.is_active,
            )
            for m in result.scalars().all()
        ]

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def find_order(
        self, store_id: str, external_order_id: str, for_update: bool = False
    ) -> Optional[Order]:
        query = (
            select(OrderModel)
            .options(*_order_options())
            .where(
                OrderModel.store_id == store_id,
                OrderModel.external_order_id == external_order_id,
            )
        )
        if for_update:
            query = query.with_for_update()

        result = await self.session.execute(query)
        model = result.scalar_one_or_none()
        if model is None:
            return None

        self._order_models[model.id] = model
        return self._to_order(model)

    async def upsert_order(self, order: Order) -> bool:
        result = await self.session.execute(
            select(OrderModel)
            .options(*_order_options())
            .where(
                OrderModel.store_id == order.store_id,
                OrderModel.external_order_id == order.external_order_id,
            )
        )
        model = result.scalar_one_or_none()

        if model is not None:
            order.id = model.id
            self._apply_order(model, order)
            self._order_models[model.id] = model
            logger.debug(f"Updated order row {order.external_order_id}")
            return False

        model = OrderModel(
            id=order.id,
            store_id=order.store_id,
            external_order_id=order.external_order_id,
            line_items=[],
            transactions=[],
            refunds=[],
        )
        self._apply_order(model, order)
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConcurrencyConflictError(
                f"Order {order.external_order_id} was inserted concurrently"
            ) from e

        self._order_models[model.id] = model
        logger.debug(f"Inserted order row {order.external_order_id}")
        return True

    async def replace_line_items(self, order_id: str, line_items: List[LineItem]) -> None:
        model = await self._load_order_model(order_id)
        current = {m.id: m for m in model.line_items}
        rows = []
        for item in line_items:
            row = current.get(item.id) or LineItemModel(id=item.id, order_id=order_id)
            row.external_line_item_id = item.external_line_item_id
            row.variant_id = item.variant_id
            row.external_variant_id = item.external_variant_id
            row.title = item.title
            row.sku = item.sku
            row.quantity = item.quantity
            row.unit_price = item.unit_price
            row.total_discount = item.total_discount
            row.tax_amount = item.tax_amount
            row.requires_shipping = item.requires_shipping
            row.unit_cogs = item.unit_cogs
            row.total_cogs = item.total_cogs
            row.cogs_source = item.cogs_source.value
            row.cogs_matched = item.cogs_matched
            rows.append(row)
        model.line_items = rows

    async def replace_transactions(self, order_id: str, transactions: List[Transaction]) -> None:
        model = await self._load_order_model(order_id)
        current = {m.external_transaction_id: m for m in model.transactions}
        rows = []
        for txn in transactions:
            row = current.get(txn.external_transaction_id) or TransactionModel(
                id=txn.id, order_id=order_id
            )
            txn.id = row.id
            row.external_transaction_id = txn.external_transaction_id
            row.kind = txn.kind.value
            row.status = txn.status.value
            row.amount = txn.amount
            row.gateway = txn.gateway
            row.reported_fee = txn.reported_fee
            row.payment_fee = txn.payment_fee
            row.fee_source = txn.fee_source.value
            row.processed_at = txn.processed_at
            rows.append(row)
        model.transactions = rows

    async def replace_refunds(self, order_id: str, refunds: List[Refund]) -> None:
        model = await self._load_order_model(order_id)
        current = {m.external_refund_id: m for m in model.refunds}
        rows = []
        for refund in refunds:
            row = current.get(refund.external_refund_id) or RefundModel(
                id=refund.id, order_id=order_id
            )
            refund.id = row.id
            row.external_refund_id = refund.external_refund_id
            row.amount = refund.amount
            row.note = refund.note
            row.restock = refund.restock
            row.total_cogs_reversed = refund.total_cogs_reversed
            row.cogs_precision = refund.cogs_precision.value
            row.processed_at = refund.processed_at
            row.line_items = [
                RefundLineItemModel(
                    external_line_item_id=line.external_line_item_id,
                    line_item_id=line.line_item_id,
                    quantity=line.quantity,
                    subtotal=line.subtotal,
                    unit_cogs=line.unit_cogs,
                    total_cogs=line.total_cogs,
                )
                for line in refund.line_items
            ]
            rows.append(row)
        model.refunds = rows
        await self.session.flush()

    async def find_orders(
        self, store_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Order]:
        query = select(OrderModel).options(*_order_options()).where(OrderModel.store_id == store_id)
        if start is not None:
            query = query.where(OrderModel.created_at >= ensure_utc(start))
        if end is not None:
            query = query.where(OrderModel.created_at <= ensure_utc(end))
        result = await self.session.execute(query.order_by(OrderModel.created_at))
        return [self._to_order(m) for m in result.scalars().all()]

    async def _load_order_model(self, order_id: str) -> OrderModel:
        model = self._order_models.get(order_id)
        if model is not None:
            return model
        result = await self.session.execute(
            select(OrderModel)
            .options(*_order_options())
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one()
        self._order_models[order_id] = model
        return model

    # =========================================================================
    # IDEMPOTENCY LEDGER
    # =========================================================================

    async def find_idempotency_record(self, event_id: str) -> Optional[IdempotencyRecord]:
        model = await self.session.get(IdempotencyRecordModel, event_id)
        if model is None:
            return None
        return IdempotencyRecord(
            event_id=model.event_id,
            status=IdempotencyStatus(model.status),
            recorded_at=ensure_utc(model.recorded_at),
            topic=model.topic,
            store_id=model.store_id,
            error=model.error,
        )

    async def write_idempotency_record(self, record: IdempotencyRecord) -> None:
        await self.session.merge(
            IdempotencyRecordModel(
                event_id=record.event_id,
                status=record.status.value,
                recorded_at=ensure_utc(record.recorded_at),
                topic=record.topic,
                store_id=record.store_id,
                error=record.error,
            )
        )

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    @staticmethod
    def _apply_order(model: OrderModel, order: Order) -> None:
        for name in _ORDER_SCALARS:
            setattr(model, name, getattr(order, name))
        model.financial_status = order.financial_status.value if order.financial_status else None
        model.source = order.source.value

    @staticmethod
    def _to_store(model: StoreModel) -> Store:
        return Store(
            id=model.id,
            domain=model.domain,
            name=model.name,
            currency=model.currency,
            is_active=model.is_active,
        )

    @staticmethod
    def _to_order(model: OrderModel) -> Order:
        """Convert database model to domain entity."""
        return Order(
            id=model.id,
            store_id=model.store_id,
            external_order_id=model.external_order_id,
            order_number=model.order_number,
            currency=model.currency,
            financial_status=FinancialStatus.parse(model.financial_status),
            source=OrderSource(model.source),
            subtotal_price=model.subtotal_price,
            total_discounts=model.total_discounts,
            total_shipping_price=model.total_shipping_price,
            total_tax=model.total_tax,
            total_price=model.total_price,
            shipping_country=model.shipping_country,
            total_cogs=model.total_cogs,
            total_cogs_reversed=model.total_cogs_reversed,
            total_payment_fees=model.total_payment_fees,
            total_shipping_cost=model.total_shipping_cost,
            total_refund_amount=model.total_refund_amount,
            gross_profit=model.gross_profit,
            net_profit=model.net_profit,
            profit_margin=model.profit_margin,
            created_at=ensure_utc(model.created_at),
            processed_at=ensure_utc(model.processed_at),
            cancelled_at=ensure_utc(model.cancelled_at),
            platform_updated_at=ensure_utc(model.platform_updated_at),
            ingested_at=ensure_utc(model.ingested_at),
            line_items=[
                LineItem(
                    id=m.id,
                    external_line_item_id=m.external_line_item_id,
                    quantity=m.quantity,
                    unit_price=m.unit_price,
                    title=m.title,
                    sku=m.sku,
                    variant_id=m.variant_id,
                    external_variant_id=m.external_variant_id,
                    total_discount=m.total_discount,
                    tax_amount=m.tax_amount,
                    requires_shipping=m.requires_shipping,
                    unit_cogs=m.unit_cogs,
                    total_cogs=m.total_cogs,
                    cogs_source=COGSSource(m.cogs_source),
                    cogs_matched=m.cogs_matched,
                )
                for m in model.line_items
            ],
            transactions=[
                Transaction(
                    id=m.id,
                    external_transaction_id=m.external_transaction_id,
                    kind=TransactionKind(m.kind),
                    status=TransactionStatus(m.status),
                    amount=m.amount,
                    gateway=m.gateway,
                    reported_fee=m.reported_fee,
                    processed_at=ensure_utc(m.processed_at),
                    payment_fee=m.payment_fee,
                    fee_source=FeeSource(m.fee_source),
                )
                for m in model.transactions
            ],
            refunds=[
                Refund(
                    id=m.id,
                    external_refund_id=m.external_refund_id,
                    amount=m.amount,
                    processed_at=ensure_utc(m.processed_at),
                    note=m.note,
                    restock=m.restock,
                    total_cogs_reversed=m.total_cogs_reversed,
                    cogs_precision=RefundCOGSPrecision(m.cogs_precision),
                    line_items=[
                        RefundLineItem(
                            external_line_item_id=line.external_line_item_id,
                            quantity=line.quantity,
                            subtotal=line.subtotal,
                            line_item_id=line.line_item_id,
                            unit_cogs=line.unit_cogs,
                            total_cogs=line.total_cogs,
                        )
                        for line in m.line_items
                    ],
                )
                for m in model.refunds
            ],
        )
