"""
Profit Summary Query.

Loads a store's orders for a period, with the COGS timelines of every
variant they reference, and reduces them through the calculation
engine. Read-only: nothing is committed.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional
import logging

from profit_core.calculations import CalculationConfig, DashboardSummary, compute_summary
from profit_core.domain.exceptions import StoreNotFoundError
from profit_core.domain.value_objects import ZERO

from profit_core.application.use_cases.ingest_order import UnitOfWorkFactory


logger = logging.getLogger(__name__)


@dataclass
class SummarizeProfitRequest:
    store_id: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    ad_spend: Decimal = ZERO
    other_expenses: Decimal = ZERO

    # Previous period enables trends
    previous_start: Optional[datetime] = None
    previous_end: Optional[datetime] = None
    previous_ad_spend: Decimal = ZERO
    previous_other_expenses: Decimal = ZERO

    include_break_even: bool = False

    @property
    def has_previous_period(self) -> bool:
        return self.previous_start is not None and self.previous_end is not None


class ProfitSummaryQuery:
    """Builds a DashboardSummary from stored orders."""

    def __init__(self, uow_factory: UnitOfWorkFactory, config: Optional[CalculationConfig] = None):
        self.uow_factory = uow_factory
        self.config = config or CalculationConfig()

    async def execute(self, request: SummarizeProfitRequest) -> DashboardSummary:
        """
        Raises:
            StoreNotFoundError: store does not exist
        """
        async with self.uow_factory() as uow:
            repo = uow.commerce
            store = await repo.find_store(request.store_id)
            if store is None:
                raise StoreNotFoundError(request.store_id)

            orders = await repo.find_orders(request.store_id, request.start, request.end)
            previous = None
            if request.has_previous_period:
                previous = await repo.find_orders(
                    request.store_id, request.previous_start, request.previous_end
                )

            variant_ids = {
                item.variant_id
                for order in orders
                for item in order.line_items
                if item.variant_id
            }
            cogs_data = await repo.find_cogs_entries_for_variants(variant_ids)

            cost_entries = None
            period = None
            if request.include_break_even and request.start and request.end:
                cost_entries = await repo.find_cost_entries(request.store_id)
                period = (request.start.date(), request.end.date())

            summary = compute_summary(
                orders,
                cogs_data,
                config=replace(self.config, currency=store.currency),
                ad_spend=request.ad_spend,
                other_expenses=request.other_expenses,
                previous_orders=previous,
                previous_ad_spend=request.previous_ad_spend,
                previous_other_expenses=request.previous_other_expenses,
                cost_entries=cost_entries,
                period=period,
            )

            logger.info(
                f"[{uow.execution_id.short()}] Summary for store {request.store_id}: "
                f"{summary.order_count} orders, net_profit={summary.profit.net_profit}, "
                f"{len(summary.warnings)} warnings"
            )
            return summary
