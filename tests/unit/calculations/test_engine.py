"""
Tests for the financial calculation engine.

Covers the revenue chain (VAT removed exactly once), per-order
reduction, break-even analysis and the dashboard summary.
"""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from profit_core.calculations import (
    CalculationConfig,
    FeeResolver,
    calculate_break_even_roas,
    compute_order_financials,
    compute_summary,
    default_shipping_tiers,
    recompute_order,
)
from profit_core.calculations.engine import (
    analyze_break_even,
    cost_in_period,
    split_custom_costs,
)
from profit_core.domain.entities import (
    COGSEntry,
    CostEntry,
    LineItem,
    Order,
    PaymentFeeConfig,
    Refund,
    Transaction,
)
from profit_core.domain.enums import (
    COGSSource,
    CostType,
    FeeType,
    RecurrenceType,
    TransactionKind,
    TransactionStatus,
    WarningSeverity,
)
from profit_core.domain.value_objects import round_currency


UTC = timezone.utc


def make_order(
    external_order_id="1",
    subtotal="1250",
    tax="250",
    cogs="400",
    fee="50",
    shipping_price="0",
    discounts="0",
    refunds=(),
    quantity=1,
    **kwargs,
) -> Order:
    transactions = []
    if fee is not None:
        transactions.append(
            Transaction(
                external_transaction_id=f"t-{external_order_id}",
                kind=TransactionKind.SALE,
                status=TransactionStatus.SUCCESS,
                amount=Decimal(subtotal),
                gateway="stripe",
                payment_fee=Decimal(fee),
            )
        )
    return Order(
        store_id="s1",
        external_order_id=external_order_id,
        created_at=kwargs.pop("created_at", datetime(2024, 6, 10, tzinfo=UTC)),
        subtotal_price=Decimal(subtotal),
        total_tax=Decimal(tax),
        total_shipping_price=Decimal(shipping_price),
        total_discounts=Decimal(discounts),
        total_price=Decimal(subtotal) + Decimal(shipping_price) - Decimal(discounts),
        line_items=[
            LineItem(
                external_line_item_id=f"li-{external_order_id}",
                quantity=quantity,
                unit_price=Decimal(subtotal),
                variant_id="v1",
                total_cogs=Decimal(cogs),
                cogs_source=COGSSource.MANUAL,
                cogs_matched=True,
            )
        ],
        transactions=transactions,
        refunds=list(refunds),
        **kwargs,
    )


COGS_DATA = {
    "v1": [COGSEntry(variant_id="v1", cost_price=Decimal("400"), effective_from=datetime(2024, 1, 1, tzinfo=UTC))]
}


class TestOrderFinancials:
    """Per-order reduction."""

    def test_vat_is_subtracted_exactly_once(self):
        """gross 1250 incl. 250 VAT, cogs 400, fees 50 -> 550, never 300."""
        financials = compute_order_financials(make_order())

        assert financials.gross_revenue == Decimal("1250.00")
        assert financials.revenue_ex_vat == Decimal("1000.00")
        assert financials.gross_profit == Decimal("600.00")
        assert financials.net_profit == Decimal("550.00")
        assert financials.profit_margin == Decimal("55.0000")

    def test_end_to_end_order(self):
        """Shipping counts as revenue; the processing fee is charged on the order total."""
        fee = FeeResolver().estimate_fee(Decimal("979.20"))
        order = make_order(
            subtotal="1000",
            shipping_price="79.20",
            discounts="100",
            tax="195.84",
            cogs="300",
            fee=str(fee),
            total_shipping_cost=Decimal("59"),
        )

        financials = compute_order_financials(order)

        assert fee == Decimal("31.40")
        assert financials.gross_revenue == Decimal("1079.20")
        assert financials.net_revenue == Decimal("979.20")
        assert financials.revenue_ex_vat == Decimal("783.36")
        assert financials.gross_profit == Decimal("483.36")
        assert financials.net_profit == Decimal("392.96")

    def test_refund_reduces_net_revenue_before_vat(self):
        order = make_order(
            subtotal="1000",
            tax="100",
            cogs="0",
            fee=None,
            refunds=[Refund(external_refund_id="r1", amount=Decimal("500"))],
        )

        financials = compute_order_financials(order)

        assert financials.net_revenue == Decimal("500.00")
        assert financials.revenue_ex_vat == Decimal("400.00")
        assert financials.total_refund_amount == Decimal("500.00")

    def test_refund_total_comes_from_records_not_stored_total(self):
        order = make_order(
            refunds=[
                Refund(external_refund_id="r1", amount=Decimal("100"), total_cogs_reversed=Decimal("40")),
                Refund(external_refund_id="r2", amount=Decimal("50")),
            ],
            total_refund_amount=Decimal("9999"),
        )

        financials = compute_order_financials(order)

        assert financials.total_refund_amount == Decimal("150.00")
        assert financials.total_cogs_reversed == Decimal("40.00")
        assert financials.effective_cogs == Decimal("360.00")

    def test_fully_refunded_order_has_zero_margin_and_unclamped_loss(self):
        order = make_order(
            subtotal="100",
            tax="0",
            cogs="50",
            fee=None,
            refunds=[Refund(external_refund_id="r1", amount=Decimal("100"))],
        )

        financials = compute_order_financials(order)

        assert financials.revenue_ex_vat == Decimal("0.00")
        assert financials.net_profit == Decimal("-50.00")
        assert financials.profit_margin == Decimal("0")

    def test_shipping_excluded_from_revenue_when_configured(self):
        order = make_order(shipping_price="100", tax="250")
        financials = compute_order_financials(order, include_shipping_in_revenue=False)
        assert financials.gross_revenue == Decimal("1250.00")

    def test_recompute_overwrites_stale_derived_fields(self):
        order = make_order(net_profit=Decimal("99999"), total_cogs=Decimal("1"))

        recompute_order(order)
        recompute_order(order)

        assert order.net_profit == Decimal("550.00")
        assert order.total_cogs == Decimal("400.00")
        assert order.total_payment_fees == Decimal("50.00")


class TestBreakEven:

    @pytest.mark.parametrize(
        "revenue,variable,expected",
        [
            ("1000", "600", Decimal("2.5")),
            ("1000", "950", Decimal("20")),
            ("1000", "1000", Decimal("999")),
            ("1000", "1500", Decimal("999")),
            ("0", "0", Decimal("999")),
        ],
    )
    def test_break_even_roas(self, revenue, variable, expected):
        assert calculate_break_even_roas(Decimal(revenue), Decimal(variable)) == expected

    def test_custom_sentinel(self):
        assert calculate_break_even_roas(Decimal("10"), Decimal("20"), sentinel=Decimal("-1")) == Decimal("-1")

    def test_reachable_break_even(self):
        analysis = analyze_break_even(Decimal("1000"), Decimal("600"), Decimal("200"))

        assert analysis.is_reachable
        assert analysis.contribution_margin_ratio == Decimal("0.4000")
        assert analysis.break_even_revenue == Decimal("500.00")
        assert analysis.break_even_roas == Decimal("2.50")

    def test_unreachable_break_even(self):
        analysis = analyze_break_even(Decimal("1000"), Decimal("1200"), Decimal("200"))

        assert not analysis.is_reachable
        assert analysis.break_even_revenue is None
        assert analysis.break_even_roas == Decimal("999")


class TestCustomCosts:
    """Accrual of operating costs into an analysis period."""

    def test_monthly_cost_accrues_full_amount_over_its_month(self):
        rent = CostEntry(
            name="Rent",
            amount=Decimal("3000"),
            cost_type=CostType.FIXED,
            start_date=date(2024, 1, 1),
            recurrence=RecurrenceType.MONTHLY,
        )
        accrued = cost_in_period(rent, date(2024, 1, 1), date(2024, 1, 31))
        assert round_currency(accrued) == Decimal("3000.00")

    def test_monthly_cost_accrues_per_day(self):
        rent = CostEntry(
            name="Rent",
            amount=Decimal("3000"),
            cost_type=CostType.FIXED,
            start_date=date(2024, 1, 1),
            recurrence=RecurrenceType.MONTHLY,
        )
        accrued = cost_in_period(rent, date(2024, 1, 1), date(2024, 1, 15))
        assert round_currency(accrued) == Decimal("1451.61")

    def test_monthly_cost_respects_end_date(self):
        contract = CostEntry(
            name="Contractor",
            amount=Decimal("3000"),
            cost_type=CostType.SALARY,
            start_date=date(2024, 6, 1),
            end_date=date(2024, 6, 10),
            recurrence=RecurrenceType.MONTHLY,
        )
        assert cost_in_period(contract, date(2024, 6, 1), date(2024, 6, 30)) == Decimal("1000")

    def test_one_off_cost_counts_only_inside_period(self):
        audit = CostEntry(
            name="Audit",
            amount=Decimal("500"),
            cost_type=CostType.ONE_TIME,
            start_date=date(2024, 6, 10),
        )
        assert cost_in_period(audit, date(2024, 6, 1), date(2024, 6, 30)) == Decimal("500")
        assert cost_in_period(audit, date(2024, 7, 1), date(2024, 7, 31)) == Decimal("0")

    def test_inactive_cost_is_ignored(self):
        old = CostEntry(
            name="Old tool",
            amount=Decimal("99"),
            cost_type=CostType.FIXED,
            start_date=date(2024, 6, 1),
            is_active=False,
        )
        assert cost_in_period(old, date(2024, 6, 1), date(2024, 6, 30)) == Decimal("0")

    def test_split_fixed_and_variable(self):
        entries = [
            CostEntry("Rent", Decimal("3000"), CostType.FIXED, date(2024, 1, 1), RecurrenceType.MONTHLY),
            CostEntry("Salary", Decimal("6000"), CostType.SALARY, date(2024, 1, 1), RecurrenceType.MONTHLY),
            CostEntry("Packaging", Decimal("500"), CostType.VARIABLE, date(2024, 6, 10)),
        ]
        fixed, variable = split_custom_costs(entries, date(2024, 6, 1), date(2024, 6, 30))
        assert fixed == Decimal("9000.00")
        assert variable == Decimal("500.00")


class TestComputeSummary:
    """Dashboard summary aggregation."""

    def test_vat_once_on_aggregate(self):
        summary = compute_summary([make_order("1"), make_order("2")], COGS_DATA)

        assert summary.order_count == 2
        assert summary.revenue.gross_revenue == Decimal("2500.00")
        assert summary.revenue.tax == Decimal("500.00")
        assert summary.revenue.revenue_ex_vat == Decimal("2000.00")
        assert summary.costs.cogs == Decimal("800.00")
        assert summary.costs.payment_fees == Decimal("100.00")
        assert summary.profit.net_profit == Decimal("1100.00")
        assert summary.profit.net_margin == Decimal("55.0000")
        assert summary.average_order_value == Decimal("1250.00")

    def test_ad_spend_and_other_expenses_reduce_net_profit(self):
        summary = compute_summary(
            [make_order()], COGS_DATA, ad_spend=Decimal("100"), other_expenses=Decimal("50")
        )

        assert summary.profit.gross_profit == Decimal("600.00")
        assert summary.profit.net_profit == Decimal("400.00")
        assert summary.costs.total_costs == Decimal("600.00")
        assert "AD_SPEND_MISSING" not in [w.code for w in summary.warnings]

    def test_missing_ad_spend_is_flagged(self):
        summary = compute_summary([make_order()], COGS_DATA)
        codes = [w.code for w in summary.warnings]
        assert codes == ["AD_SPEND_MISSING"]
        assert not summary.has_errors

    def test_break_even_roas_in_profit_breakdown(self):
        summary = compute_summary([make_order()], COGS_DATA)
        # variable costs 450 against 1000 ex-VAT revenue
        assert summary.profit.contribution_margin == Decimal("55.0000")
        assert summary.profit.break_even_roas == Decimal("1.82")

    def test_loss_making_period_uses_sentinel(self):
        summary = compute_summary([make_order(cogs="2000")], COGS_DATA)
        assert summary.profit.break_even_roas == Decimal("999")
        assert summary.profit.net_profit == Decimal("-1050.00")

    def test_cancelled_orders_excluded(self):
        cancelled = make_order("2", cancelled_at=datetime(2024, 6, 11, tzinfo=UTC))

        summary = compute_summary([make_order("1"), cancelled], COGS_DATA)

        assert summary.order_count == 1
        assert summary.data_quality.cancelled_orders_excluded == 1
        assert "CANCELLED_EXCLUDED" in [w.code for w in summary.warnings]

    def test_cancelled_orders_kept_when_configured(self):
        cancelled = make_order("2", cancelled_at=datetime(2024, 6, 11, tzinfo=UTC))
        config = CalculationConfig(exclude_cancelled_orders=False)

        summary = compute_summary([make_order("1"), cancelled], COGS_DATA, config)

        assert summary.order_count == 2

    def test_missing_cogs_lowers_coverage_and_raises_error(self):
        order = make_order()
        order.line_items[0].variant_id = "unknown"
        order.line_items[0].cogs_matched = False
        order.line_items[0].cogs_source = COGSSource.MISSING
        order.line_items[0].total_cogs = Decimal("0")

        summary = compute_summary([order], COGS_DATA)

        assert summary.data_quality.cogs_coverage_rate == Decimal("0")
        assert summary.data_quality.cogs_match_rate == Decimal("0")
        assert summary.data_quality.missing_line_items == 1
        assert summary.data_quality.missing_cogs_products[0].variant_id == "unknown"
        incomplete = next(w for w in summary.warnings if w.code == "INCOMPLETE_COGS")
        assert incomplete.severity == WarningSeverity.ERROR
        assert summary.has_errors

    def test_fallback_cogs_is_flagged(self):
        order = make_order()
        order.line_items[0].cogs_matched = False
        order.line_items[0].cogs_source = COGSSource.FALLBACK

        summary = compute_summary([order], COGS_DATA)

        assert summary.data_quality.fallback_line_items == 1
        assert "COGS_FALLBACK_USED" in [w.code for w in summary.warnings]

    def test_orders_without_transactions_flag_estimated_fees(self):
        order = make_order(fee=None, total_payment_fees=Decimal("39.25"))

        summary = compute_summary([order], COGS_DATA)

        assert summary.costs.payment_fees == Decimal("39.25")
        estimated = next(w for w in summary.warnings if w.code == "FEES_ESTIMATED")
        assert estimated.details["order_ids"] == ["1"]

    def test_fee_configs_recompute_unreported_fees(self):
        config = CalculationConfig(
            payment_fee_configs=(
                PaymentFeeConfig(
                    gateway="stripe", fee_type=FeeType.PERCENTAGE_ONLY, percentage_rate=Decimal("0.02")
                ),
            )
        )

        summary = compute_summary([make_order()], COGS_DATA, config)

        assert summary.costs.payment_fees == Decimal("25.00")
        assert summary.profit.net_profit == Decimal("575.00")

    def test_shipping_tiers_recompute_shipping_cost(self):
        config = CalculationConfig(shipping_tiers=tuple(default_shipping_tiers()))

        summary = compute_summary([make_order(quantity=3)], COGS_DATA, config)

        assert summary.costs.shipping_costs == Decimal("52.00")

    def test_trends_against_loss_making_previous_period(self):
        previous = make_order("p1", subtotal="100", tax="0", cogs="200", fee=None)

        summary = compute_summary([make_order()], COGS_DATA, previous_orders=[previous])

        assert summary.trends is not None
        assert summary.trends.profit_change == Decimal("650.0000")
        assert summary.trends.revenue_change == Decimal("1150.0000")
        assert summary.trends.order_count_change == Decimal("0")

    def test_break_even_analysis_over_custom_costs(self):
        rent = CostEntry("Rent", Decimal("3000"), CostType.FIXED, date(2024, 1, 1), RecurrenceType.MONTHLY)

        summary = compute_summary(
            [make_order()],
            COGS_DATA,
            cost_entries=[rent],
            period=(date(2024, 6, 1), date(2024, 6, 30)),
        )

        assert summary.break_even is not None
        assert summary.break_even.fixed_costs == Decimal("3000.00")
        assert summary.break_even.break_even_revenue == Decimal("5454.55")
        assert summary.break_even.is_reachable

    def test_empty_period(self):
        summary = compute_summary([], {})

        assert summary.order_count == 0
        assert summary.average_order_value == Decimal("0.00")
        assert summary.profit.net_margin == Decimal("0")
        assert summary.profit.break_even_roas == Decimal("999")
        assert summary.data_quality.cogs_coverage_rate == Decimal("100")
        assert summary.warnings == []
        assert summary.date_range is None
