"""Tests for ProfitSummaryQuery over the in-memory unit of work."""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from profit_core.application.use_cases import (
    OrderReconciler,
    ProfitSummaryQuery,
    SummarizeProfitRequest,
)
from profit_core.domain.entities import CostEntry, Store
from profit_core.domain.enums import CostType, RecurrenceType
from profit_core.domain.exceptions import StoreNotFoundError


STORE_ID = "store-1"
MARCH_START = datetime(2024, 3, 1, tzinfo=timezone.utc)
MARCH_END = datetime(2024, 3, 31, 23, 59, 59, tzinfo=timezone.utc)


@pytest.fixture
def reconciler(uow_factory):
    return OrderReconciler(uow_factory)


@pytest.fixture
def query(uow_factory):
    return ProfitSummaryQuery(uow_factory)


class TestProfitSummaryQuery:

    @pytest.mark.asyncio
    async def test_summarizes_stored_orders(self, reconciler, query, order_event):
        await reconciler.ingest_order(order_event(), STORE_ID)

        summary = await query.execute(SummarizeProfitRequest(store_id=STORE_ID))

        assert summary.order_count == 1
        assert summary.currency == "SEK"
        assert summary.revenue.revenue_ex_vat == Decimal("800.00")
        assert summary.costs.cogs == Decimal("200.00")
        assert summary.costs.payment_fees == Decimal("32.00")
        assert summary.profit.net_profit == Decimal("568.00")
        assert summary.data_quality.cogs_match_rate == Decimal("100.0000")

    @pytest.mark.asyncio
    async def test_unknown_store(self, query):
        with pytest.raises(StoreNotFoundError):
            await query.execute(SummarizeProfitRequest(store_id="store-404"))

    @pytest.mark.asyncio
    async def test_currency_comes_from_the_store(self, commerce_store, uow_factory):
        commerce_store.add_store(Store(id="store-eu", domain="eu-shop.myshopify.com", currency="EUR"))

        summary = await ProfitSummaryQuery(uow_factory).execute(SummarizeProfitRequest(store_id="store-eu"))

        assert summary.currency == "EUR"
        assert summary.order_count == 0
        assert summary.profit.net_profit == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_period_filters_orders(self, reconciler, query, order_event):
        await reconciler.ingest_order(order_event(), STORE_ID)
        await reconciler.ingest_order(
            order_event(external_order_id="1002", created_at="2024-04-02T08:00:00Z"), STORE_ID
        )

        summary = await query.execute(
            SummarizeProfitRequest(store_id=STORE_ID, start=MARCH_START, end=MARCH_END)
        )

        assert summary.order_count == 1
        assert summary.date_range.start == datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_ad_spend_reduces_net_profit(self, reconciler, query, order_event):
        await reconciler.ingest_order(order_event(), STORE_ID)

        summary = await query.execute(
            SummarizeProfitRequest(store_id=STORE_ID, ad_spend=Decimal("100"), other_expenses=Decimal("18"))
        )

        assert summary.profit.net_profit == Decimal("450.00")
        assert summary.costs.total_costs == Decimal("350.00")

    @pytest.mark.asyncio
    async def test_previous_period_enables_trends(self, reconciler, query, order_event):
        await reconciler.ingest_order(order_event(), STORE_ID)
        await reconciler.ingest_order(
            order_event(external_order_id="0990", created_at="2024-02-10T08:00:00Z"), STORE_ID
        )

        summary = await query.execute(
            SummarizeProfitRequest(
                store_id=STORE_ID,
                start=MARCH_START,
                end=MARCH_END,
                previous_start=datetime(2024, 2, 1, tzinfo=timezone.utc),
                previous_end=datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone.utc),
            )
        )

        assert summary.trends is not None
        assert summary.trends.revenue_change == Decimal("0.00")
        assert summary.trends.order_count_change == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_no_trends_without_previous_period(self, reconciler, query, order_event):
        await reconciler.ingest_order(order_event(), STORE_ID)

        summary = await query.execute(SummarizeProfitRequest(store_id=STORE_ID))

        assert summary.trends is None
        assert summary.break_even is None

    @pytest.mark.asyncio
    async def test_break_even_uses_store_cost_entries(self, reconciler, query, order_event, commerce_store):
        await reconciler.ingest_order(order_event(), STORE_ID)
        commerce_store.add_cost_entry(
            CostEntry(
                name="Office rent",
                amount=Decimal("3000.00"),
                cost_type=CostType.FIXED,
                start_date=date(2024, 1, 1),
                recurrence=RecurrenceType.MONTHLY,
                store_id=STORE_ID,
            )
        )

        summary = await query.execute(
            SummarizeProfitRequest(
                store_id=STORE_ID, start=MARCH_START, end=MARCH_END, include_break_even=True
            )
        )

        assert summary.break_even is not None
        assert summary.break_even.fixed_costs == Decimal("3000.00")
        assert summary.break_even.variable_costs == Decimal("232.00")
        assert summary.break_even.is_reachable is True

    @pytest.mark.asyncio
    async def test_break_even_needs_a_bounded_period(self, reconciler, query, order_event):
        await reconciler.ingest_order(order_event(), STORE_ID)

        summary = await query.execute(SummarizeProfitRequest(store_id=STORE_ID, include_break_even=True))

        assert summary.break_even is None
