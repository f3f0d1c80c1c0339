"""
Refund Reconciler Use Case.

Folds refund events into an existing order.

CRITICAL: The order's refund total and reversed COGS are ALWAYS the sum
over its current Refund records. A re-delivered or corrected refund
replaces its own record (keyed by external refund id); nothing is
decremented, so applying the same refund twice changes nothing.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional
import logging

from profit_core.calculations import CalculationConfig, CalculationWarning, recompute_order
from profit_core.domain.entities import Order
from profit_core.domain.enums import RefundCOGSPrecision, WarningSeverity
from profit_core.domain.exceptions import (
    MalformedPayloadError,
    OrderNotFoundError,
    StoreNotFoundError,
)
from profit_core.domain.value_objects import ZERO, ExecutionID

from profit_core.application.dtos.order_event import RefundEvent
from profit_core.application.mappers import to_refund
from profit_core.application.use_cases.ingest_order import UnitOfWorkFactory


logger = logging.getLogger(__name__)


# =============================================================================
# RESPONSE DTOs (Application Layer)
# =============================================================================

@dataclass
class OrderTotals:
    """Order aggregates after a refund was folded in."""
    total_refund_amount: Decimal
    total_cogs: Decimal
    total_cogs_reversed: Decimal
    gross_profit: Decimal
    net_profit: Decimal
    profit_margin: Decimal

    @classmethod
    def from_order(cls, order: Order) -> "OrderTotals":
        return cls(
            total_refund_amount=order.total_refund_amount,
            total_cogs=order.total_cogs,
            total_cogs_reversed=order.total_cogs_reversed,
            gross_profit=order.gross_profit,
            net_profit=order.net_profit,
            profit_margin=order.profit_margin,
        )


@dataclass
class ApplyRefundResult:
    execution_id: ExecutionID
    order_id: str
    refund_id: str
    external_refund_id: str
    amount: Decimal
    cogs_reversed: Decimal
    cogs_precision: RefundCOGSPrecision
    created: bool
    new_order_totals: OrderTotals
    warnings: List[CalculationWarning] = field(default_factory=list)


@dataclass
class SyncRefundsResult:
    execution_id: ExecutionID
    order_id: str
    applied: int
    removed: int
    new_order_totals: OrderTotals


# =============================================================================
# USE CASE
# =============================================================================

class RefundReconciler:
    """Applies refunds to stored orders and rederives their profit."""

    def __init__(self, uow_factory: UnitOfWorkFactory, config: Optional[CalculationConfig] = None):
        self.uow_factory = uow_factory
        self.config = config or CalculationConfig()

    async def _load_order(self, uow, store_id: str, external_order_id: str) -> Order:
        if await uow.commerce.find_store(store_id) is None:
            raise StoreNotFoundError(store_id)
        order = await uow.commerce.find_order(store_id, external_order_id, for_update=True)
        if order is None:
            raise OrderNotFoundError(store_id, external_order_id)
        return order

    async def apply_refund(self, event: RefundEvent, store_id: str) -> ApplyRefundResult:
        """
        Upsert one refund record and recompute the parent order.

        Raises:
            MalformedPayloadError: event does not name its parent order
            StoreNotFoundError / OrderNotFoundError: missing references
        """
        if not event.external_order_id:
            raise MalformedPayloadError(f"Refund {event.external_refund_id} has no order reference")

        async with self.uow_factory() as uow:
            prefix = f"[{uow.execution_id.short()}]"
            order = await self._load_order(uow, store_id, event.external_order_id)

            # =================================================================
            # STEP 1: Build refund with reversed COGS
            # =================================================================
            refund, unmatched = to_refund(event, order)
            created = order.find_refund(event.external_refund_id) is None

            # =================================================================
            # STEP 2: Replace this refund's record, keep the others
            # =================================================================
            others = [r for r in order.refunds if r.external_refund_id != refund.external_refund_id]
            order.refunds = others + [refund]

            # =================================================================
            # STEP 3: Recompute totals as sums over all refunds
            # =================================================================
            recompute_order(order, self.config.include_shipping_in_revenue)

            await uow.commerce.upsert_order(order)
            await uow.commerce.replace_refunds(order.id, order.refunds)
            await uow.commit()

            warnings = self._refund_warnings(refund, unmatched)
            logger.info(
                f"{prefix} ✅ Refund {refund.external_refund_id} {'applied' if created else 'replaced'} "
                f"on order {order.external_order_id}: amount={refund.amount} "
                f"cogs_reversed={refund.total_cogs_reversed} ({refund.cogs_precision.value}), "
                f"order refunds={order.total_refund_amount} net_profit={order.net_profit}"
            )

            return ApplyRefundResult(
                execution_id=uow.execution_id,
                order_id=order.id,
                refund_id=refund.id,
                external_refund_id=refund.external_refund_id,
                amount=refund.amount,
                cogs_reversed=refund.total_cogs_reversed,
                cogs_precision=refund.cogs_precision,
                created=created,
                new_order_totals=OrderTotals.from_order(order),
                warnings=warnings,
            )

    # Entry-point name used by the ingestion services
    ingest_refund = apply_refund

    async def sync_order_refunds(
        self, store_id: str, external_order_id: str, events: List[RefundEvent]
    ) -> SyncRefundsResult:
        """
        Replace the full refund set of an order with the upstream list.

        Refunds no longer present upstream are removed.
        """
        async with self.uow_factory() as uow:
            order = await self._load_order(uow, store_id, external_order_id)
            upstream_ids = {e.external_refund_id for e in events}
            removed = sum(1 for r in order.refunds if r.external_refund_id not in upstream_ids)

            rebuilt = []
            for event in events:
                refund, _ = to_refund(event, order, prior_refunds=rebuilt)
                rebuilt.append(refund)
            order.refunds = rebuilt

            recompute_order(order, self.config.include_shipping_in_revenue)
            await uow.commerce.upsert_order(order)
            await uow.commerce.replace_refunds(order.id, order.refunds)
            await uow.commit()

            logger.info(
                f"[{uow.execution_id.short()}] Synced {len(rebuilt)} refunds for order "
                f"{external_order_id} ({removed} removed)"
            )
            return SyncRefundsResult(
                execution_id=uow.execution_id,
                order_id=order.id,
                applied=len(rebuilt),
                removed=removed,
                new_order_totals=OrderTotals.from_order(order),
            )

    @staticmethod
    def _refund_warnings(refund, unmatched: List[str]) -> List[CalculationWarning]:
        warnings = []
        if refund.cogs_precision == RefundCOGSPrecision.PROPORTIONAL:
            warnings.append(
                CalculationWarning(
                    code="PROPORTIONAL_REFUND_COGS",
                    severity=WarningSeverity.INFO,
                    message="Refund has no line breakdown; reversed COGS is a proportional estimate",
                    details={"cogs_reversed": refund.total_cogs_reversed},
                )
            )
        if unmatched:
            warnings.append(
                CalculationWarning(
                    code="REFUND_LINE_UNMATCHED",
                    severity=WarningSeverity.WARNING,
                    message=f"{len(unmatched)} refunded lines do not match any order line",
                    details={"line_items": unmatched},
                )
            )
        if refund.amount == ZERO:
            warnings.append(
                CalculationWarning(
                    code="ZERO_AMOUNT_REFUND",
                    severity=WarningSeverity.INFO,
                    message="Refund carries no amount",
                )
            )
        return warnings
