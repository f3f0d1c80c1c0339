"""
Order Reconciler Use Case.

Folds one normalized order event into storage.

CRITICAL: Every ingestion is a FULL REPLACE inside one transaction:
    read (locked) -> rebuild children -> recompute derived fields -> commit
Derived fields are never incremented, so replaying the same event any
number of times converges on the same row.

Flow:
1. Resolve store (missing store -> StoreNotFoundError)
2. Lock and load the existing order, if any
3. Load variants, COGS timelines, fee configs and shipping tiers
4. Rebuild line items (COGS at order creation time), transactions, refunds
5. Resolve payment fees and shipping cost
6. Recompute profit fields via the calculation engine
7. Upsert order, replace children, commit
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional
import logging

from profit_core.calculations import (
    CalculationConfig,
    CalculationWarning,
    COGSResolver,
    FeeResolver,
    ShippingCostResolver,
    recompute_order,
)
from profit_core.calculations.cogs import calculate_match_rate
from profit_core.domain.enums import COGSSource, OrderSource, WarningSeverity
from profit_core.domain.exceptions import ConcurrencyConflictError, StoreNotFoundError
from profit_core.domain.repositories import AbstractUnitOfWork
from profit_core.domain.value_objects import ONE_HUNDRED, ZERO, ExecutionID, utc_now

from profit_core.application.dtos.order_event import OrderEvent
from profit_core.application.mappers import (
    count_cogs_sources,
    reprice_refunds,
    to_line_items,
    to_order,
    to_refund,
    to_transactions,
)


logger = logging.getLogger(__name__)


UnitOfWorkFactory = Callable[[], AbstractUnitOfWork]


# =============================================================================
# RESPONSE DTOs (Application Layer)
# =============================================================================

@dataclass
class IngestOrderResult:
    """
    Output of one order ingestion.

    Profit figures are always accompanied by the COGS match rate that
    bounds their confidence.
    """
    execution_id: ExecutionID
    store_id: str
    external_order_id: str
    order_id: str
    created: bool

    total_cogs: Decimal = ZERO
    total_payment_fees: Decimal = ZERO
    total_shipping_cost: Decimal = ZERO
    total_refund_amount: Decimal = ZERO
    net_profit: Decimal = ZERO
    profit_margin: Decimal = ZERO
    cogs_match_rate: Decimal = ONE_HUNDRED

    warnings: List[CalculationWarning] = field(default_factory=list)
    attempts: int = 1
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = utc_now()

    @property
    def updated(self) -> bool:
        return not self.created


@dataclass
class BatchItemError:
    external_order_id: str
    error: str


@dataclass
class BatchIngestResult:
    processed: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[BatchItemError] = field(default_factory=list)
    results: List[IngestOrderResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0


# =============================================================================
# USE CASE
# =============================================================================

class OrderReconciler:
    """
    Upserts an order's facts transactionally and recomputes its profit.

    Webhook and bulk-sync ingestion both route through here, so the
    effect of an order is identical regardless of how it arrived.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        config: Optional[CalculationConfig] = None,
        max_retries: int = 3,
    ):
        """
        Initialize reconciler with dependencies.

        Args:
            uow_factory: creates a fresh unit of work per attempt
            config: calculation defaults (fee fallback, default COGS, ...)
            max_retries: attempts on ConcurrencyConflictError before giving up
        """
        self.uow_factory = uow_factory
        self.config = config or CalculationConfig()
        self.max_retries = max(1, max_retries)

    async def ingest_order(
        self,
        event: OrderEvent,
        store_id: str,
        source: OrderSource = OrderSource.SYNC,
    ) -> IngestOrderResult:
        """
        Ingest one order, retrying the whole transaction on a concurrent upsert.

        Raises:
            StoreNotFoundError: store_id does not exist
            ConcurrencyConflictError: still conflicting after max_retries
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                result = await self._ingest_once(event, store_id, source)
                result.attempts = attempt
                return result
            except ConcurrencyConflictError:
                if attempt == self.max_retries:
                    logger.error(
                        f"❌ Order {event.external_order_id} (store {store_id}) still conflicting "
                        f"after {attempt} attempts"
                    )
                    raise
                logger.warning(
                    f"Concurrent write on order {event.external_order_id}, "
                    f"retrying ({attempt}/{self.max_retries})"
                )

    async def _ingest_once(
        self, event: OrderEvent, store_id: str, source: OrderSource
    ) -> IngestOrderResult:
        async with self.uow_factory() as uow:
            execution_id = uow.execution_id
            prefix = f"[{execution_id.short()}]"
            repo = uow.commerce

            # =================================================================
            # STEP 1: Resolve store
            # =================================================================
            store = await repo.find_store(store_id)
            if store is None:
                raise StoreNotFoundError(store_id)

            # =================================================================
            # STEP 2: Lock existing order
            # =================================================================
            existing = await repo.find_order(store_id, event.external_order_id, for_update=True)
            logger.info(
                f"{prefix} Ingesting order {event.external_order_id} for store {store_id} "
                f"({'update' if existing else 'create'}, source={source.value})"
            )

            # =================================================================
            # STEP 3: Load catalog costs and fee/shipping configuration
            # =================================================================
            external_variant_ids = {
                li.external_variant_id for li in event.line_items if li.external_variant_id
            }
            variants = await repo.find_variants_by_external_ids(store_id, external_variant_ids)
            cogs_data = await repo.find_cogs_entries_for_variants(v.id for v in variants.values())
            cogs_resolver = COGSResolver(cogs_data, default_cogs=self.config.default_cogs)
            fee_resolver = FeeResolver(
                await repo.find_active_fee_configs(store_id),
                default_rate=self.config.default_fee_rate,
                default_fixed_fee=self.config.default_fixed_fee,
            )
            shipping_resolver = ShippingCostResolver(await repo.find_active_shipping_tiers(store_id))

            # =================================================================
            # STEP 4: Rebuild the aggregate from the event
            # =================================================================
            order = to_order(event, store, source, existing)
            order.line_items = to_line_items(
                event.line_items, order, variants, cogs_resolver, existing
            )
            order.transactions = to_transactions(event.transactions)

            # Previous refunds stay visible while rebuilding so their ids are kept
            order.refunds = existing.refunds if existing is not None else []
            if event.refunds is not None:
                rebuilt = []
                for refund_event in event.refunds:
                    rebuilt.append(to_refund(refund_event, order, prior_refunds=rebuilt)[0])
                order.refunds = rebuilt
            elif order.refunds:
                # Kept refunds follow re-resolved unit costs
                order.refunds = reprice_refunds(order.refunds, order)

            # =================================================================
            # STEP 5: Fees and shipping
            # =================================================================
            warnings: List[CalculationWarning] = []
            if order.transactions:
                fee_resolver.apply_to_transactions(order.transactions)
            elif order.total_price > ZERO:
                order.total_payment_fees = fee_resolver.estimate_fee(order.total_price)
                warnings.append(
                    CalculationWarning(
                        code="FEES_ESTIMATED",
                        severity=WarningSeverity.INFO,
                        message="Order has no transactions; payment fee estimated at the default rate",
                        details={"estimated_fee": order.total_payment_fees},
                    )
                )
            order.total_shipping_cost = shipping_resolver.calculate_for_order(order)

            # =================================================================
            # STEP 6: Recompute derived fields from scratch
            # =================================================================
            financials = recompute_order(order, self.config.include_shipping_in_revenue)
            warnings.extend(self._cogs_warnings(order))

            # =================================================================
            # STEP 7: Persist atomically
            # =================================================================
            created = await repo.upsert_order(order)
            await repo.replace_line_items(order.id, order.line_items)
            await repo.replace_transactions(order.id, order.transactions)
            await repo.replace_refunds(order.id, order.refunds)
            await uow.commit()

            matched = sum(1 for item in order.line_items if item.cogs_matched)
            match_rate = calculate_match_rate(matched, len(order.line_items))

            logger.info(
                f"{prefix} ✅ Order {order.external_order_id} {'created' if created else 'updated'}: "
                f"cogs={financials.total_cogs} fees={financials.total_payment_fees} "
                f"net_profit={financials.net_profit} match_rate={match_rate}%"
            )

            return IngestOrderResult(
                execution_id=execution_id,
                store_id=store_id,
                external_order_id=order.external_order_id,
                order_id=order.id,
                created=created,
                total_cogs=financials.total_cogs,
                total_payment_fees=financials.total_payment_fees,
                total_shipping_cost=financials.total_shipping_cost,
                total_refund_amount=financials.total_refund_amount,
                net_profit=financials.net_profit,
                profit_margin=financials.profit_margin,
                cogs_match_rate=match_rate,
                warnings=warnings,
            )

    @staticmethod
    def _cogs_warnings(order) -> List[CalculationWarning]:
        counts = count_cogs_sources(order.line_items)
        warnings = []
        missing = counts.get(COGSSource.MISSING, 0)
        fallback = counts.get(COGSSource.FALLBACK, 0)
        if missing:
            warnings.append(
                CalculationWarning(
                    code="INCOMPLETE_COGS",
                    severity=WarningSeverity.WARNING,
                    message=f"{missing} line items have no COGS data; counted at zero cost",
                    details={
                        "line_items": [
                            i.external_line_item_id
                            for i in order.line_items
                            if i.cogs_source == COGSSource.MISSING
                        ]
                    },
                )
            )
        if fallback:
            warnings.append(
                CalculationWarning(
                    code="COGS_FALLBACK_USED",
                    severity=WarningSeverity.WARNING,
                    message=f"{fallback} line items use a fallback COGS (order predates cost data)",
                    details={"count": fallback},
                )
            )
        return warnings

    # =========================================================================
    # BATCH
    # =========================================================================

    async def ingest_batch(
        self,
        events: List[OrderEvent],
        store_id: str,
        source: OrderSource = OrderSource.SYNC,
    ) -> BatchIngestResult:
        """
        Ingest many orders; one order's failure does not abort the batch.

        Each order runs in its own transaction.
        """
        batch = BatchIngestResult()
        for event in events:
            try:
                result = await self.ingest_order(event, store_id, source)
            except Exception as e:
                batch.failed += 1
                batch.errors.append(
                    BatchItemError(external_order_id=event.external_order_id, error=str(e))
                )
                logger.error(f"❌ Failed to ingest order {event.external_order_id}: {e}")
                continue

            batch.processed += 1
            batch.results.append(result)
            if result.created:
                batch.created += 1
            else:
                batch.updated += 1

        logger.info(
            f"Batch ingest for store {store_id}: {batch.processed} processed "
            f"({batch.created} created, {batch.updated} updated), {batch.failed} failed"
        )
        return batch
