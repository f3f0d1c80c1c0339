"""
Calculation input and result types.

Pure dataclasses. Every computed figure travels together with the
warnings and match rates that bound its confidence.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from profit_core.domain.entities import PaymentFeeConfig, ShippingTier
from profit_core.domain.enums import COGSSource, WarningSeverity


# =============================================================================
# CONFIG
# =============================================================================

@dataclass(frozen=True)
class CalculationConfig:
    """
    Knobs for one summary computation.

    Fee configs and shipping tiers are optional: when given, fees for
    transactions without a platform-reported fee and shipping costs are
    recomputed from them instead of read from the stored order fields.
    """
    currency: str = "SEK"
    vat_rate: Decimal = Decimal("0.25")
    include_shipping_in_revenue: bool = True
    exclude_cancelled_orders: bool = True
    default_fee_rate: Decimal = Decimal("0.029")
    default_fixed_fee: Decimal = Decimal("3.00")
    break_even_sentinel: Decimal = Decimal("999")
    coverage_warning_threshold: Decimal = Decimal("80")
    coverage_error_threshold: Decimal = Decimal("50")
    default_cogs: Optional[Decimal] = None
    payment_fee_configs: Tuple[PaymentFeeConfig, ...] = ()
    shipping_tiers: Tuple[ShippingTier, ...] = ()

    @classmethod
    def from_settings(cls, settings, **overrides) -> "CalculationConfig":
        """Build from a CalculationSettings section."""
        values = dict(
            currency=settings.currency,
            vat_rate=settings.vat_rate,
            include_shipping_in_revenue=settings.include_shipping_in_revenue,
            exclude_cancelled_orders=settings.exclude_cancelled_orders,
            default_fee_rate=settings.default_fee_rate,
            default_fixed_fee=settings.default_fixed_fee,
            break_even_sentinel=settings.break_even_sentinel,
            coverage_warning_threshold=settings.coverage_warning_threshold,
            coverage_error_threshold=settings.coverage_error_threshold,
            default_cogs=settings.default_cogs,
        )
        values.update(overrides)
        return cls(**values)


# =============================================================================
# WARNINGS
# =============================================================================

@dataclass(frozen=True)
class CalculationWarning:
    """Data-quality condition attached to a result. Never aborts a calculation."""
    code: str
    severity: WarningSeverity
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# COGS
# =============================================================================

@dataclass(frozen=True)
class COGSLookup:
    """Unit cost resolved for a variant at a point in time."""
    cost_price: Decimal
    source: COGSSource
    matched: bool
    effective_from: Optional[datetime] = None
    entry_id: Optional[str] = None


@dataclass(frozen=True)
class LineItemCOGS:
    line_item_id: str
    variant_id: Optional[str]
    quantity: int
    unit_cogs: Decimal
    total_cogs: Decimal
    source: COGSSource
    matched: bool


@dataclass(frozen=True)
class OrderCOGSResult:
    line_items: List[LineItemCOGS]
    total_cogs: Decimal
    matched_count: int
    missing_count: int
    fallback_count: int
    match_rate: Decimal


@dataclass(frozen=True)
class MissingVariant:
    variant_id: Optional[str]
    title: Optional[str] = None
    sku: Optional[str] = None
    order_count: int = 0


@dataclass(frozen=True)
class COGSCoverage:
    total_variants: int
    variants_with_cogs: int
    coverage_rate: Decimal
    missing_variants: List[MissingVariant]
    warning: Optional[CalculationWarning] = None


# =============================================================================
# BREAKDOWNS
# =============================================================================

@dataclass(frozen=True)
class RevenueBreakdown:
    gross_revenue: Decimal
    shipping_revenue: Decimal
    discounts: Decimal
    refunds: Decimal
    net_revenue: Decimal
    tax: Decimal
    revenue_ex_vat: Decimal


@dataclass(frozen=True)
class CostBreakdown:
    cogs: Decimal
    payment_fees: Decimal
    shipping_costs: Decimal
    ad_spend: Decimal
    other_expenses: Decimal
    total_costs: Decimal


@dataclass(frozen=True)
class ProfitBreakdown:
    gross_profit: Decimal
    gross_margin: Decimal
    net_profit: Decimal
    net_margin: Decimal
    contribution_margin: Decimal
    break_even_roas: Decimal


@dataclass(frozen=True)
class OrderFinancials:
    """Derived fields of a single order, recomputed from its children."""
    gross_revenue: Decimal
    net_revenue: Decimal
    revenue_ex_vat: Decimal
    total_refund_amount: Decimal
    total_cogs: Decimal
    total_cogs_reversed: Decimal
    effective_cogs: Decimal
    total_payment_fees: Decimal
    total_shipping_cost: Decimal
    gross_profit: Decimal
    net_profit: Decimal
    profit_margin: Decimal


@dataclass(frozen=True)
class BreakEvenAnalysis:
    """
    Fixed/variable split for the analysis period.

    break_even_revenue is None when the contribution margin is not
    positive (break-even is unreachable).
    """
    fixed_costs: Decimal
    variable_costs: Decimal
    contribution_margin_ratio: Decimal
    break_even_revenue: Optional[Decimal]
    break_even_roas: Decimal
    is_reachable: bool


# =============================================================================
# SUMMARY
# =============================================================================

@dataclass(frozen=True)
class DataQuality:
    cogs_match_rate: Decimal
    cogs_coverage_rate: Decimal
    total_line_items: int
    matched_line_items: int
    missing_line_items: int
    fallback_line_items: int
    missing_cogs_products: List[MissingVariant]
    orders_with_refunds: int
    cancelled_orders_excluded: int
    proportional_refunds: int


@dataclass(frozen=True)
class TrendComparison:
    revenue_change: Decimal
    profit_change: Decimal
    order_count_change: Decimal
    margin_change: Decimal


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class DashboardSummary:
    currency: str
    order_count: int
    average_order_value: Decimal
    revenue: RevenueBreakdown
    costs: CostBreakdown
    profit: ProfitBreakdown
    data_quality: DataQuality
    warnings: List[CalculationWarning]
    calculated_at: datetime
    date_range: Optional[DateRange] = None
    trends: Optional[TrendComparison] = None
    break_even: Optional[BreakEvenAnalysis] = None

    @property
    def has_errors(self) -> bool:
        return any(w.severity == WarningSeverity.ERROR for w in self.warnings)


