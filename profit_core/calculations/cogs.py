"""
COGS Resolver.

Point-in-time unit cost lookup over a variant's cost timeline.

Fallback policy:
    If no entry covers the requested instant (typically an order that
    predates COGS data entry), the chronologically EARLIEST entry is used
    and the result is flagged matched=False / source=FALLBACK. The guess
    is never reported as an exact match.
"""
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from profit_core.domain.entities import COGSEntry, Order
from profit_core.domain.enums import COGSSource, WarningSeverity
from profit_core.domain.value_objects import (
    ONE_HUNDRED,
    ZERO,
    ensure_utc,
    round_currency,
    safe_percentage,
    to_decimal,
)

from .types import (
    CalculationWarning,
    COGSCoverage,
    COGSLookup,
    LineItemCOGS,
    MissingVariant,
    OrderCOGSResult,
)


CogsData = Mapping[str, Sequence[COGSEntry]]


def build_cogs_data(entries: Iterable[COGSEntry]) -> Dict[str, List[COGSEntry]]:
    """Group entries by variant, each timeline sorted by effective_from."""
    grouped: Dict[str, List[COGSEntry]] = defaultdict(list)
    for entry in entries:
        grouped[entry.variant_id].append(entry)
    return {
        variant_id: sorted(timeline, key=lambda e: e.effective_from)
        for variant_id, timeline in grouped.items()
    }


def get_cogs_at_date(
    entries: Sequence[COGSEntry],
    at: datetime,
    default_cogs: Optional[Decimal] = None,
    platform_unit_cost: Optional[Decimal] = None,
) -> COGSLookup:
    """
    Resolve the unit cost effective at `at`.

    Order of precedence:
        1. earliest entry covering `at` (exact, matched=True)
        2. earliest entry overall (FALLBACK, matched=False)
        3. platform-reported unit cost (PLATFORM_REPORTED, matched=True)
        4. configured default COGS (FALLBACK, matched=False)
        5. zero (MISSING, matched=False)
    """
    timeline = sorted(entries, key=lambda e: e.effective_from)

    if timeline:
        at = ensure_utc(at)
        for entry in timeline:
            if entry.covers(at):
                return COGSLookup(
                    cost_price=entry.cost_price,
                    source=entry.source,
                    matched=True,
                    effective_from=entry.effective_from,
                    entry_id=entry.id,
                )

        earliest = timeline[0]
        return COGSLookup(
            cost_price=earliest.cost_price,
            source=COGSSource.FALLBACK,
            matched=False,
            effective_from=earliest.effective_from,
            entry_id=earliest.id,
        )

    if platform_unit_cost is not None:
        return COGSLookup(
            cost_price=to_decimal(platform_unit_cost),
            source=COGSSource.PLATFORM_REPORTED,
            matched=True,
        )

    if default_cogs is not None:
        return COGSLookup(
            cost_price=to_decimal(default_cogs),
            source=COGSSource.FALLBACK,
            matched=False,
        )

    return COGSLookup(cost_price=ZERO, source=COGSSource.MISSING, matched=False)


class COGSResolver:
    """
    Resolves unit costs from preloaded COGS timelines.

    Usage:
        resolver = COGSResolver(build_cogs_data(entries))
        lookup = resolver.resolve(variant_id, order.created_at)
        if not lookup.matched:
            ...  # surface as data-quality signal
    """

    def __init__(self, cogs_data: CogsData, default_cogs: Optional[Decimal] = None):
        self.cogs_data = cogs_data
        self.default_cogs = default_cogs

    def has_entries(self, variant_id: Optional[str]) -> bool:
        return bool(variant_id) and bool(self.cogs_data.get(variant_id))

    def resolve(
        self,
        variant_id: Optional[str],
        at: datetime,
        platform_unit_cost: Optional[Decimal] = None,
    ) -> COGSLookup:
        entries = self.cogs_data.get(variant_id, ()) if variant_id else ()
        return get_cogs_at_date(
            entries,
            at,
            default_cogs=self.default_cogs,
            platform_unit_cost=platform_unit_cost,
        )


def calculate_order_cogs(order: Order, resolver: COGSResolver) -> OrderCOGSResult:
    """
    Resolve COGS for every line of an order at the order's creation time.

    Cost at time of sale, never cost at time of data arrival.
    """
    lines: List[LineItemCOGS] = []
    matched = missing = fallback = 0

    for item in order.line_items:
        lookup = resolver.resolve(item.variant_id, order.created_at)
        unit_cogs = round_currency(lookup.cost_price)
        lines.append(
            LineItemCOGS(
                line_item_id=item.id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                unit_cogs=unit_cogs,
                total_cogs=round_currency(unit_cogs * item.quantity),
                source=lookup.source,
                matched=lookup.matched,
            )
        )
        if lookup.matched:
            matched += 1
        elif lookup.source == COGSSource.MISSING:
            missing += 1
        else:
            fallback += 1

    total = sum((line.total_cogs for line in lines), ZERO)
    return OrderCOGSResult(
        line_items=lines,
        total_cogs=round_currency(total),
        matched_count=matched,
        missing_count=missing,
        fallback_count=fallback,
        match_rate=calculate_match_rate(matched, len(lines)),
    )


def calculate_match_rate(matched: int, total: int) -> Decimal:
    """Percentage of lines with an exact COGS match; 100 when there are no lines."""
    if total == 0:
        return ONE_HUNDRED
    return safe_percentage(matched, total)


# =============================================================================
# COVERAGE
# =============================================================================

def coverage_severity(
    coverage_rate: Decimal,
    warning_threshold: Decimal = Decimal("80"),
    error_threshold: Decimal = Decimal("50"),
) -> Optional[WarningSeverity]:
    """None at full coverage, escalating info -> warning -> error as it drops."""
    if coverage_rate >= ONE_HUNDRED:
        return None
    if coverage_rate < error_threshold:
        return WarningSeverity.ERROR
    if coverage_rate < warning_threshold:
        return WarningSeverity.WARNING
    return WarningSeverity.INFO


def validate_cogs_coverage(
    orders: Iterable[Order],
    cogs_data: CogsData,
    warning_threshold: Decimal = Decimal("80"),
    error_threshold: Decimal = Decimal("50"),
) -> COGSCoverage:
    """
    Fraction of distinct variants sold in `orders` that have any COGS entry.

    Unmatched line items (no catalog variant) are reported as missing too,
    keyed by SKU or title, because their cost can never be resolved.
    """
    variants: Dict[str, MissingVariant] = {}
    order_counts: Dict[str, set] = defaultdict(set)

    for order in orders:
        for item in order.line_items:
            key = item.variant_id or f"unmatched:{item.sku or item.title or item.external_line_item_id}"
            if key not in variants:
                variants[key] = MissingVariant(
                    variant_id=item.variant_id, title=item.title, sku=item.sku
                )
            order_counts[key].add(order.id)

    total = len(variants)
    with_cogs = {key for key, v in variants.items() if v.variant_id and cogs_data.get(v.variant_id)}
    missing = [
        MissingVariant(
            variant_id=v.variant_id,
            title=v.title,
            sku=v.sku,
            order_count=len(order_counts[key]),
        )
        for key, v in variants.items()
        if key not in with_cogs
    ]
    missing.sort(key=lambda m: m.order_count, reverse=True)

    coverage_rate = ONE_HUNDRED if total == 0 else safe_percentage(len(with_cogs), total)
    severity = coverage_severity(coverage_rate, warning_threshold, error_threshold)

    warning = None
    if severity is not None:
        warning = CalculationWarning(
            code="INCOMPLETE_COGS",
            severity=severity,
            message=(
                f"{len(missing)} of {total} variants have no COGS data "
                f"({coverage_rate}% coverage); profit is overstated for those items"
            ),
            details={
                "coverage_rate": coverage_rate,
                "missing_variant_ids": [m.variant_id for m in missing if m.variant_id],
                "missing_skus": [m.sku for m in missing if m.sku],
            },
        )

    return COGSCoverage(
        total_variants=total,
        variants_with_cogs=len(with_cogs),
        coverage_rate=coverage_rate,
        missing_variants=missing,
        warning=warning,
    )


# =============================================================================
# REFUND REVERSAL
# =============================================================================

def line_item_cogs_reversal(unit_cogs: Decimal, quantity: int) -> Decimal:
    """COGS returned to stock for a refunded line, at the snapshotted unit cost."""
    return round_currency(to_decimal(unit_cogs) * quantity)


def proportional_cogs_reversal(
    total_cogs: Decimal, refund_amount: Decimal, order_total: Decimal
) -> Decimal:
    """
    Approximate reversal for refunds without a line breakdown:
    total_cogs * refund_amount / order_total, capped at total_cogs.
    """
    order_total = to_decimal(order_total)
    if order_total <= ZERO:
        return ZERO
    ratio = min(to_decimal(refund_amount) / order_total, Decimal("1"))
    if ratio <= ZERO:
        return ZERO
    return round_currency(to_decimal(total_cogs) * ratio)
