"""
Financial Calculation Engine.

Pure, deterministic functions over in-memory order facts. No I/O.

Revenue chain (all prices are tax-inclusive):
    gross_revenue  = subtotal + shipping_charged
    net_revenue    = gross_revenue - discounts - refunds
    revenue_ex_vat = net_revenue - tax            <- VAT removed EXACTLY ONCE
    gross_profit   = revenue_ex_vat - cogs        <- shipping is never COGS
    net_profit     = gross_profit - payment_fees - shipping_cost - ad_spend - other

Negative profit is a valid result and is never clamped.
The only exception raised here is NumericCoercionError for non-numeric input.
"""
import calendar
import logging
from collections import defaultdict
from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from profit_core.domain.entities import CostEntry, Order
from profit_core.domain.enums import (
    COGSSource,
    CostType,
    RecurrenceType,
    RefundCOGSPrecision,
    WarningSeverity,
)
from profit_core.domain.value_objects import (
    ONE_HUNDRED,
    ZERO,
    round_currency,
    round_percentage,
    safe_divide,
    safe_margin,
    safe_percentage,
    sum_decimals,
    to_decimal,
    utc_now,
)

from .cogs import CogsData, calculate_match_rate, validate_cogs_coverage
from .fees import FeeResolver, ShippingCostResolver
from .types import (
    BreakEvenAnalysis,
    CalculationConfig,
    CalculationWarning,
    CostBreakdown,
    DashboardSummary,
    DataQuality,
    DateRange,
    MissingVariant,
    OrderFinancials,
    ProfitBreakdown,
    RevenueBreakdown,
    TrendComparison,
)


logger = logging.getLogger(__name__)

DEFAULT_BREAK_EVEN_SENTINEL = Decimal("999")

FIXED_COST_TYPES = frozenset({CostType.FIXED, CostType.SALARY, CostType.ONE_TIME})


# =============================================================================
# REVENUE / PROFIT PRIMITIVES
# =============================================================================

def calculate_gross_revenue(subtotal, shipping_charged, include_shipping: bool = True) -> Decimal:
    gross = to_decimal(subtotal)
    if include_shipping:
        gross += to_decimal(shipping_charged)
    return gross


def calculate_net_revenue(gross_revenue, discounts, refunds) -> Decimal:
    return to_decimal(gross_revenue) - to_decimal(discounts) - to_decimal(refunds)


def calculate_revenue_ex_vat(net_revenue, tax) -> Decimal:
    """The single place VAT is subtracted."""
    return to_decimal(net_revenue) - to_decimal(tax)


def calculate_gross_profit(revenue_ex_vat, cogs) -> Decimal:
    return to_decimal(revenue_ex_vat) - to_decimal(cogs)


def calculate_net_profit(
    gross_profit, payment_fees, shipping_cost, ad_spend=ZERO, other_expenses=ZERO
) -> Decimal:
    return (
        to_decimal(gross_profit)
        - to_decimal(payment_fees)
        - to_decimal(shipping_cost)
        - to_decimal(ad_spend)
        - to_decimal(other_expenses)
    )


# =============================================================================
# BREAK-EVEN
# =============================================================================

def calculate_contribution_margin_ratio(revenue_ex_vat, variable_costs) -> Decimal:
    """1 - variable/revenue; 0 when there is no revenue."""
    revenue_ex_vat = to_decimal(revenue_ex_vat)
    if revenue_ex_vat <= ZERO:
        return ZERO
    return Decimal("1") - to_decimal(variable_costs) / revenue_ex_vat


def calculate_break_even_roas(
    revenue_ex_vat, variable_costs, sentinel: Decimal = DEFAULT_BREAK_EVEN_SENTINEL
) -> Decimal:
    """
    Minimum ROAS at which ad spend stops losing money.

    Returns `sentinel` (never infinity) when variable costs meet or
    exceed revenue.
    """
    ratio = calculate_contribution_margin_ratio(revenue_ex_vat, variable_costs)
    if ratio <= ZERO:
        return to_decimal(sentinel)
    return round_currency(Decimal("1") / ratio)


def calculate_break_even_revenue(fixed_costs, contribution_margin_ratio) -> Optional[Decimal]:
    """fixed / ratio; None when the ratio is not positive (unreachable)."""
    ratio = to_decimal(contribution_margin_ratio)
    if ratio <= ZERO:
        return None
    return round_currency(to_decimal(fixed_costs) / ratio)


def _days(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def cost_in_period(entry: CostEntry, period_start: date, period_end: date) -> Decimal:
    """
    Portion of a cost entry falling inside [period_start, period_end].

    Monthly recurring costs accrue per day at amount / days-in-that-month,
    so a full calendar month accrues exactly `amount`. Non-recurring costs
    count in full when their date is inside the period.
    """
    if not entry.is_active:
        return ZERO

    if entry.recurrence == RecurrenceType.NONE:
        if period_start <= entry.start_date <= period_end:
            return to_decimal(entry.amount)
        return ZERO

    first = max(period_start, entry.start_date)
    last = min(period_end, entry.end_date) if entry.end_date else period_end
    if first > last:
        return ZERO

    amount = to_decimal(entry.amount)
    total = ZERO
    for day in _days(first, last):
        days_in_month = calendar.monthrange(day.year, day.month)[1]
        total += amount / days_in_month
    return total


def split_custom_costs(
    cost_entries: Iterable[CostEntry], period_start: date, period_end: date
) -> Tuple[Decimal, Decimal]:
    """Return (fixed, variable) custom costs accrued in the period."""
    fixed = variable = ZERO
    for entry in cost_entries:
        amount = cost_in_period(entry, period_start, period_end)
        if entry.cost_type in FIXED_COST_TYPES:
            fixed += amount
        else:
            variable += amount
    return round_currency(fixed), round_currency(variable)


def analyze_break_even(
    revenue_ex_vat,
    variable_costs,
    fixed_costs,
    sentinel: Decimal = DEFAULT_BREAK_EVEN_SENTINEL,
) -> BreakEvenAnalysis:
    ratio = calculate_contribution_margin_ratio(revenue_ex_vat, variable_costs)
    break_even_revenue = calculate_break_even_revenue(fixed_costs, ratio)
    return BreakEvenAnalysis(
        fixed_costs=round_currency(fixed_costs),
        variable_costs=round_currency(variable_costs),
        contribution_margin_ratio=round_percentage(ratio),
        break_even_revenue=break_even_revenue,
        break_even_roas=calculate_break_even_roas(revenue_ex_vat, variable_costs, sentinel),
        is_reachable=break_even_revenue is not None,
    )


# =============================================================================
# ORDER REDUCER
# =============================================================================

def resolve_refund_total(order: Order) -> Decimal:
    """
    Sum of the order's Refund records.

    The stored total is only used when no Refund records are loaded.
    """
    if order.refunds:
        return sum_decimals(refund.amount for refund in order.refunds)
    return to_decimal(order.total_refund_amount)


def resolve_cogs_reversed(order: Order) -> Decimal:
    if order.refunds:
        return sum_decimals(refund.total_cogs_reversed for refund in order.refunds)
    return to_decimal(order.total_cogs_reversed)


def resolve_payment_fees(order: Order) -> Decimal:
    """Per-transaction fees when transactions exist, else the stored estimate."""
    if order.transactions:
        return sum_decimals(t.payment_fee for t in order.transactions)
    return to_decimal(order.total_payment_fees)


def compute_order_financials(
    order: Order,
    include_shipping_in_revenue: bool = True,
    payment_fees: Optional[Decimal] = None,
    shipping_cost: Optional[Decimal] = None,
) -> OrderFinancials:
    """
    Recompute every derived field of an order from its children.

    A pure reducer over the current line items, transactions and refunds.
    """
    total_cogs = sum_decimals(item.total_cogs for item in order.line_items)
    cogs_reversed = resolve_cogs_reversed(order)
    effective_cogs = total_cogs - cogs_reversed
    refunds = resolve_refund_total(order)
    fees = resolve_payment_fees(order) if payment_fees is None else to_decimal(payment_fees)
    shipping = to_decimal(order.total_shipping_cost if shipping_cost is None else shipping_cost)

    gross_revenue = calculate_gross_revenue(
        order.subtotal_price, order.total_shipping_price, include_shipping_in_revenue
    )
    net_revenue = calculate_net_revenue(gross_revenue, order.total_discounts, refunds)
    revenue_ex_vat = calculate_revenue_ex_vat(net_revenue, order.total_tax)
    gross_profit = calculate_gross_profit(revenue_ex_vat, effective_cogs)
    net_profit = calculate_net_profit(gross_profit, fees, shipping)

    return OrderFinancials(
        gross_revenue=round_currency(gross_revenue),
        net_revenue=round_currency(net_revenue),
        revenue_ex_vat=round_currency(revenue_ex_vat),
        total_refund_amount=round_currency(refunds),
        total_cogs=round_currency(total_cogs),
        total_cogs_reversed=round_currency(cogs_reversed),
        effective_cogs=round_currency(effective_cogs),
        total_payment_fees=round_currency(fees),
        total_shipping_cost=round_currency(shipping),
        gross_profit=round_currency(gross_profit),
        net_profit=round_currency(net_profit),
        profit_margin=safe_margin(net_profit, revenue_ex_vat),
    )


def recompute_order(order: Order, include_shipping_in_revenue: bool = True) -> OrderFinancials:
    """Overwrite the order's cached derived fields with fresh values."""
    financials = compute_order_financials(order, include_shipping_in_revenue)
    order.total_cogs = financials.total_cogs
    order.total_cogs_reversed = financials.total_cogs_reversed
    order.total_refund_amount = financials.total_refund_amount
    order.total_payment_fees = financials.total_payment_fees
    order.total_shipping_cost = financials.total_shipping_cost
    order.gross_profit = financials.gross_profit
    order.net_profit = financials.net_profit
    order.profit_margin = financials.profit_margin
    return financials


# =============================================================================
# DASHBOARD SUMMARY
# =============================================================================

def _percentage_change(current: Decimal, previous: Decimal) -> Decimal:
    return safe_percentage(current - previous, previous)


def calculate_trends(current: DashboardSummary, previous: DashboardSummary) -> TrendComparison:
    """
    Period-over-period change.

    Profit change is relative to |previous| (or 1 when previous is zero)
    so a swing from loss to profit keeps the right sign.
    """
    prev_profit = previous.profit.net_profit
    profit_base = abs(prev_profit) if prev_profit != ZERO else Decimal("1")
    return TrendComparison(
        revenue_change=_percentage_change(current.revenue.net_revenue, previous.revenue.net_revenue),
        profit_change=round_percentage(
            (current.profit.net_profit - prev_profit) / profit_base * ONE_HUNDRED
        ),
        order_count_change=_percentage_change(
            Decimal(current.order_count), Decimal(previous.order_count)
        ),
        margin_change=round_percentage(current.profit.net_margin - previous.profit.net_margin),
    )


def _build_data_quality(
    orders: Sequence[Order],
    coverage_rate: Decimal,
    cancelled_excluded: int,
) -> DataQuality:
    total_lines = matched = missing = fallback = 0
    missing_products: Dict[str, MissingVariant] = {}
    missing_orders: Dict[str, set] = defaultdict(set)

    for order in orders:
        for item in order.line_items:
            total_lines += 1
            if item.cogs_matched:
                matched += 1
                continue
            if item.cogs_source == COGSSource.FALLBACK:
                fallback += 1
                continue
            missing += 1
            key = item.variant_id or item.sku or item.title or item.external_line_item_id
            missing_products.setdefault(
                key, MissingVariant(variant_id=item.variant_id, title=item.title, sku=item.sku)
            )
            missing_orders[key].add(order.id)

    products = [
        MissingVariant(
            variant_id=p.variant_id, title=p.title, sku=p.sku, order_count=len(missing_orders[key])
        )
        for key, p in missing_products.items()
    ]
    products.sort(key=lambda p: p.order_count, reverse=True)

    return DataQuality(
        cogs_match_rate=calculate_match_rate(matched, total_lines),
        cogs_coverage_rate=coverage_rate,
        total_line_items=total_lines,
        matched_line_items=matched,
        missing_line_items=missing,
        fallback_line_items=fallback,
        missing_cogs_products=products,
        orders_with_refunds=sum(1 for o in orders if o.has_refunds),
        cancelled_orders_excluded=cancelled_excluded,
        proportional_refunds=sum(
            1
            for o in orders
            for r in o.refunds
            if r.cogs_precision == RefundCOGSPrecision.PROPORTIONAL
        ),
    )


def _collect_warnings(
    orders: Sequence[Order],
    data_quality: DataQuality,
    coverage_warning: Optional[CalculationWarning],
    ad_spend: Decimal,
) -> List[CalculationWarning]:
    warnings: List[CalculationWarning] = []
    if coverage_warning is not None:
        warnings.append(coverage_warning)

    if data_quality.fallback_line_items:
        warnings.append(
            CalculationWarning(
                code="COGS_FALLBACK_USED",
                severity=WarningSeverity.WARNING,
                message=(
                    f"{data_quality.fallback_line_items} line items use a fallback COGS "
                    f"(no cost entry effective at order date)"
                ),
                details={"fallback_line_items": data_quality.fallback_line_items},
            )
        )

    if orders and ad_spend == ZERO:
        warnings.append(
            CalculationWarning(
                code="AD_SPEND_MISSING",
                severity=WarningSeverity.INFO,
                message="No ad spend recorded for the period; net profit excludes advertising",
            )
        )

    if data_quality.cancelled_orders_excluded:
        warnings.append(
            CalculationWarning(
                code="CANCELLED_EXCLUDED",
                severity=WarningSeverity.INFO,
                message=f"{data_quality.cancelled_orders_excluded} cancelled orders excluded",
                details={"count": data_quality.cancelled_orders_excluded},
            )
        )

    if data_quality.proportional_refunds:
        warnings.append(
            CalculationWarning(
                code="PROPORTIONAL_REFUND_COGS",
                severity=WarningSeverity.INFO,
                message=(
                    f"{data_quality.proportional_refunds} refunds had no line breakdown; "
                    f"reversed COGS is a proportional estimate"
                ),
                details={"count": data_quality.proportional_refunds},
            )
        )

    estimated = [o.external_order_id for o in orders if not o.transactions and o.total_payment_fees > ZERO]
    if estimated:
        warnings.append(
            CalculationWarning(
                code="FEES_ESTIMATED",
                severity=WarningSeverity.INFO,
                message=f"{len(estimated)} orders have no transactions; payment fees are estimated",
                details={"order_ids": estimated},
            )
        )

    return warnings


def compute_summary(
    orders: Sequence[Order],
    cogs_data: CogsData,
    config: Optional[CalculationConfig] = None,
    ad_spend=ZERO,
    other_expenses=ZERO,
    previous_orders: Optional[Sequence[Order]] = None,
    previous_ad_spend=ZERO,
    previous_other_expenses=ZERO,
    cost_entries: Optional[Sequence[CostEntry]] = None,
    period: Optional[Tuple[date, date]] = None,
    calculated_at: Optional[datetime] = None,
) -> DashboardSummary:
    """
    Revenue / cost / profit breakdown for a set of orders.

    Args:
        orders: orders with line items, transactions and refunds loaded
        cogs_data: variant id -> COGS timeline, used for coverage validation
        config: calculation options (defaults when None)
        ad_spend: total ad spend for the period
        other_expenses: other operating expenses for the period
        previous_orders: previous-period orders; enables trends
        cost_entries: custom costs; with `period` enables break-even analysis
        period: (start, end) dates of the analysis period

    Returns:
        DashboardSummary with warnings and data-quality report attached
    """
    config = config or CalculationConfig()
    ad_spend = to_decimal(ad_spend)
    other_expenses = to_decimal(other_expenses)

    # =====================================================================
    # STEP 1: Filter cancelled orders
    # =====================================================================
    included: List[Order] = []
    cancelled_excluded = 0
    for order in orders:
        if config.exclude_cancelled_orders and order.is_cancelled:
            cancelled_excluded += 1
            continue
        included.append(order)

    # =====================================================================
    # STEP 2: Per-order reduction
    # =====================================================================
    fee_resolver = None
    if config.payment_fee_configs:
        fee_resolver = FeeResolver(
            config.payment_fee_configs, config.default_fee_rate, config.default_fixed_fee
        )
    shipping_resolver = ShippingCostResolver(config.shipping_tiers) if config.shipping_tiers else None

    gross = shipping_revenue = discounts = refunds = tax = ZERO
    cogs = fees = shipping_costs = ZERO

    for order in included:
        order_fees = None
        if fee_resolver is not None and order.transactions:
            order_fees = sum_decimals(
                fee_resolver.resolve_transaction_fee(t)[0] for t in order.transactions
            )
        order_shipping = None
        if shipping_resolver is not None:
            order_shipping = shipping_resolver.calculate_for_order(order)

        financials = compute_order_financials(
            order,
            include_shipping_in_revenue=config.include_shipping_in_revenue,
            payment_fees=order_fees,
            shipping_cost=order_shipping,
        )
        gross += financials.gross_revenue
        if config.include_shipping_in_revenue:
            shipping_revenue += to_decimal(order.total_shipping_price)
        discounts += to_decimal(order.total_discounts)
        refunds += financials.total_refund_amount
        tax += to_decimal(order.total_tax)
        cogs += financials.effective_cogs
        fees += financials.total_payment_fees
        shipping_costs += financials.total_shipping_cost

    # =====================================================================
    # STEP 3: Aggregate chain (VAT subtracted once, on the aggregate)
    # =====================================================================
    net_revenue = calculate_net_revenue(gross, discounts, refunds)
    revenue_ex_vat = calculate_revenue_ex_vat(net_revenue, tax)
    gross_profit = calculate_gross_profit(revenue_ex_vat, cogs)
    net_profit = calculate_net_profit(gross_profit, fees, shipping_costs, ad_spend, other_expenses)
    variable_costs = cogs + fees + shipping_costs

    revenue = RevenueBreakdown(
        gross_revenue=round_currency(gross),
        shipping_revenue=round_currency(shipping_revenue),
        discounts=round_currency(discounts),
        refunds=round_currency(refunds),
        net_revenue=round_currency(net_revenue),
        tax=round_currency(tax),
        revenue_ex_vat=round_currency(revenue_ex_vat),
    )
    costs = CostBreakdown(
        cogs=round_currency(cogs),
        payment_fees=round_currency(fees),
        shipping_costs=round_currency(shipping_costs),
        ad_spend=round_currency(ad_spend),
        other_expenses=round_currency(other_expenses),
        total_costs=round_currency(variable_costs + ad_spend + other_expenses),
    )
    profit = ProfitBreakdown(
        gross_profit=round_currency(gross_profit),
        gross_margin=safe_margin(gross_profit, revenue_ex_vat),
        net_profit=round_currency(net_profit),
        net_margin=safe_margin(net_profit, revenue_ex_vat),
        contribution_margin=round_percentage(
            calculate_contribution_margin_ratio(revenue_ex_vat, variable_costs) * ONE_HUNDRED
        ),
        break_even_roas=calculate_break_even_roas(
            revenue_ex_vat, variable_costs, config.break_even_sentinel
        ),
    )

    # =====================================================================
    # STEP 4: Data quality and warnings
    # =====================================================================
    coverage = validate_cogs_coverage(
        included,
        cogs_data,
        warning_threshold=config.coverage_warning_threshold,
        error_threshold=config.coverage_error_threshold,
    )
    data_quality = _build_data_quality(included, coverage.coverage_rate, cancelled_excluded)
    warnings = _collect_warnings(included, data_quality, coverage.warning, ad_spend)

    # =====================================================================
    # STEP 5: Optional break-even analysis
    # =====================================================================
    break_even = None
    if cost_entries is not None and period is not None:
        fixed_custom, variable_custom = split_custom_costs(cost_entries, period[0], period[1])
        break_even = analyze_break_even(
            revenue_ex_vat,
            variable_costs + ad_spend + other_expenses + variable_custom,
            fixed_custom,
            config.break_even_sentinel,
        )

    date_range = None
    if included:
        created = [o.created_at for o in included]
        date_range = DateRange(start=min(created), end=max(created))

    summary = DashboardSummary(
        currency=config.currency,
        order_count=len(included),
        average_order_value=round_currency(safe_divide(net_revenue, len(included))),
        revenue=revenue,
        costs=costs,
        profit=profit,
        data_quality=data_quality,
        warnings=warnings,
        calculated_at=calculated_at or utc_now(),
        date_range=date_range,
        break_even=break_even,
    )

    # =====================================================================
    # STEP 6: Optional period-over-period trend
    # =====================================================================
    if previous_orders is not None:
        previous = compute_summary(
            previous_orders,
            cogs_data,
            config,
            ad_spend=previous_ad_spend,
            other_expenses=previous_other_expenses,
            calculated_at=summary.calculated_at,
        )
        summary = replace(summary, trends=calculate_trends(summary, previous))

    logger.debug(
        f"Summary computed: {summary.order_count} orders, net profit {summary.profit.net_profit} "
        f"{summary.currency}, {len(warnings)} warnings"
    )
    return summary
