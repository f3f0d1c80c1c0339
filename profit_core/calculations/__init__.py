"""
Calculation package.

Pure functions only: nothing in here performs I/O.
"""
from .types import (
    BreakEvenAnalysis,
    CalculationConfig,
    CalculationWarning,
    COGSCoverage,
    COGSLookup,
    CostBreakdown,
    DashboardSummary,
    DataQuality,
    DateRange,
    MissingVariant,
    OrderCOGSResult,
    OrderFinancials,
    ProfitBreakdown,
    RevenueBreakdown,
    TrendComparison,
)
from .cogs import (
    COGSResolver,
    build_cogs_data,
    calculate_order_cogs,
    get_cogs_at_date,
    line_item_cogs_reversal,
    proportional_cogs_reversal,
    validate_cogs_coverage,
)
from .fees import (
    FeeResolver,
    ShippingCostResolver,
    default_shipping_tiers,
    validate_shipping_tiers,
)
from .engine import (
    calculate_break_even_roas,
    compute_order_financials,
    compute_summary,
    recompute_order,
)

__all__ = [
    "BreakEvenAnalysis",
    "CalculationConfig",
    "CalculationWarning",
    "COGSCoverage",
    "COGSLookup",
    "CostBreakdown",
    "DashboardSummary",
    "DataQuality",
    "DateRange",
    "MissingVariant",
    "OrderCOGSResult",
    "OrderFinancials",
    "ProfitBreakdown",
    "RevenueBreakdown",
    "TrendComparison",
    "COGSResolver",
    "build_cogs_data",
    "calculate_order_cogs",
    "get_cogs_at_date",
    "line_item_cogs_reversal",
    "proportional_cogs_reversal",
    "validate_cogs_coverage",
    "FeeResolver",
    "ShippingCostResolver",
    "default_shipping_tiers",
    "validate_shipping_tiers",
    "calculate_break_even_roas",
    "compute_order_financials",
    "compute_summary",
    "recompute_order",
]
