"""
Mappers from normalized events to domain entities.

COGS snapshots are taken here, at ingestion time, keyed on the
order's creation timestamp.
"""
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from profit_core.calculations.cogs import (
    COGSResolver,
    line_item_cogs_reversal,
    proportional_cogs_reversal,
)
from profit_core.domain.entities import (
    LineItem,
    Order,
    Refund,
    RefundLineItem,
    Store,
    Transaction,
    Variant,
)
from profit_core.domain.enums import COGSSource, OrderSource, RefundCOGSPrecision
from profit_core.domain.value_objects import ZERO, round_currency, sum_decimals, utc_now

from .dtos.order_event import LineItemEvent, OrderEvent, RefundEvent, TransactionEvent


logger = logging.getLogger(__name__)


def to_order(
    event: OrderEvent,
    store: Store,
    source: OrderSource,
    existing: Optional[Order] = None,
) -> Order:
    """Order row from an event. Keeps the internal id of an existing order."""
    order = Order(
        store_id=store.id,
        external_order_id=event.external_order_id,
        created_at=event.created_at,
        order_number=event.order_number,
        currency=event.currency or store.currency,
        financial_status=event.financial_status,
        subtotal_price=round_currency(event.subtotal_price),
        total_discounts=round_currency(event.total_discounts),
        total_shipping_price=round_currency(event.total_shipping_price),
        total_tax=round_currency(event.total_tax),
        total_price=round_currency(event.total_price),
        shipping_country=event.shipping_country,
        source=source,
        processed_at=event.processed_at,
        cancelled_at=event.cancelled_at,
        platform_updated_at=event.updated_at,
        ingested_at=utc_now(),
    )
    if existing is not None:
        order.id = existing.id
    return order


def _reusable_snapshot(previous: Optional[LineItem], variant_id: Optional[str]) -> bool:
    """An exact snapshot from an earlier ingestion is kept; guesses are re-resolved."""
    return (
        previous is not None
        and previous.cogs_matched
        and previous.cogs_source.is_exact
        and previous.variant_id == variant_id
    )


def to_line_items(
    events: List[LineItemEvent],
    order: Order,
    variants: Mapping[str, Variant],
    resolver: COGSResolver,
    existing: Optional[Order] = None,
) -> List[LineItem]:
    """Line items with their COGS snapshot resolved at order.created_at."""
    items: List[LineItem] = []
    for event in events:
        variant = variants.get(event.external_variant_id) if event.external_variant_id else None
        variant_id = variant.id if variant else None
        previous = existing.find_line_item(event.external_line_item_id) if existing else None

        if _reusable_snapshot(previous, variant_id):
            unit_cogs = previous.unit_cogs
            source = previous.cogs_source
            matched = True
        else:
            lookup = resolver.resolve(variant_id, order.created_at, event.platform_unit_cost)
            unit_cogs = round_currency(lookup.cost_price)
            source = lookup.source
            matched = lookup.matched

        item = LineItem(
            external_line_item_id=event.external_line_item_id,
            quantity=event.quantity,
            unit_price=round_currency(event.unit_price),
            title=event.title or (variant.title if variant else None),
            sku=event.sku or (variant.sku if variant else None),
            variant_id=variant_id,
            external_variant_id=event.external_variant_id,
            total_discount=round_currency(event.total_discount),
            tax_amount=round_currency(event.resolved_tax),
            requires_shipping=event.requires_shipping and (variant.requires_shipping if variant else True),
            unit_cogs=unit_cogs,
            total_cogs=round_currency(unit_cogs * event.quantity),
            cogs_source=source,
            cogs_matched=matched,
        )
        if previous is not None:
            item.id = previous.id
        items.append(item)
    return items


def to_transactions(events: List[TransactionEvent]) -> List[Transaction]:
    return [
        Transaction(
            external_transaction_id=event.external_transaction_id,
            kind=event.kind,
            status=event.status,
            amount=round_currency(event.amount),
            gateway=event.gateway,
            reported_fee=event.fee,
            processed_at=event.processed_at,
        )
        for event in events
    ]


def _refunded_quantities(refunds: Iterable[Refund]) -> Dict[str, int]:
    refunded: Dict[str, int] = {}
    for refund in refunds:
        for line in refund.line_items:
            refunded[line.external_line_item_id] = (
                refunded.get(line.external_line_item_id, 0) + line.quantity
            )
    return refunded


def _reverse_line(
    external_line_item_id: str,
    quantity: int,
    subtotal: Decimal,
    order: Order,
    refunded: Dict[str, int],
) -> Tuple[RefundLineItem, bool]:
    """
    One refunded line at the original line's snapshotted unit cost.

    The quantity is capped at what is left unrefunded on the original
    line; `refunded` is updated in place.
    """
    original = order.find_line_item(external_line_item_id)
    if original is None:
        unit_cogs = ZERO
    else:
        unit_cogs = original.unit_cogs
        remaining = max(original.quantity - refunded.get(external_line_item_id, 0), 0)
        quantity = min(quantity, remaining)
    refunded[external_line_item_id] = refunded.get(external_line_item_id, 0) + quantity
    line = RefundLineItem(
        external_line_item_id=external_line_item_id,
        quantity=quantity,
        subtotal=round_currency(subtotal),
        line_item_id=original.id if original else None,
        unit_cogs=unit_cogs,
        total_cogs=line_item_cogs_reversal(unit_cogs, quantity),
    )
    return line, original is not None


def _proportional_reversal(amount: Decimal, order: Order) -> Decimal:
    order_cogs = sum_decimals(item.total_cogs for item in order.line_items)
    return proportional_cogs_reversal(order_cogs, amount, order.total_price)


def to_refund(
    event: RefundEvent,
    order: Order,
    prior_refunds: Optional[Iterable[Refund]] = None,
) -> Tuple[Refund, List[str]]:
    """
    Refund record with reversed COGS.

    Line-level reversal uses the snapshotted unit cost of the original
    sale line. Without a line breakdown the reversal is proportional to
    the refunded share of the order total.

    Args:
        prior_refunds: refunds whose quantities count against each line's
            remaining quantity; defaults to the order's other refunds

    Returns:
        (refund, external line item ids that could not be matched)
    """
    if prior_refunds is None:
        prior_refunds = [
            r for r in order.refunds if r.external_refund_id != event.external_refund_id
        ]
    amount = round_currency(event.resolved_amount)
    lines: List[RefundLineItem] = []
    unmatched: List[str] = []

    if event.line_items:
        refunded = _refunded_quantities(prior_refunds)
        for requested in event.line_items:
            line, matched = _reverse_line(
                requested.external_line_item_id,
                requested.quantity,
                requested.subtotal,
                order,
                refunded,
            )
            if not matched:
                unmatched.append(requested.external_line_item_id)
            lines.append(line)
        cogs_reversed = sum_decimals(line.total_cogs for line in lines)
        precision = RefundCOGSPrecision.LINE_ITEM
    elif amount > ZERO:
        cogs_reversed = _proportional_reversal(amount, order)
        precision = RefundCOGSPrecision.PROPORTIONAL
    else:
        cogs_reversed = ZERO
        precision = RefundCOGSPrecision.NONE

    refund = Refund(
        external_refund_id=event.external_refund_id,
        amount=amount,
        processed_at=event.processed_at,
        note=event.note,
        restock=event.restock,
        line_items=lines,
        total_cogs_reversed=round_currency(cogs_reversed),
        cogs_precision=precision,
    )
    previous = order.find_refund(event.external_refund_id)
    if previous is not None:
        refund.id = previous.id

    if unmatched:
        logger.warning(
            f"Refund {event.external_refund_id} on order {order.external_order_id} references "
            f"unknown line items {unmatched}; no COGS reversed for them"
        )
    return refund, unmatched


def reprice_refunds(refunds: List[Refund], order: Order) -> List[Refund]:
    """
    Stored refunds with their COGS reversal redone against the order's
    current line items.

    Used when an order is re-ingested without refund data: lines whose
    COGS was re-resolved carry a new unit cost, and the reversals of
    refunds already on record have to follow it.
    """
    refunded: Dict[str, int] = {}
    repriced: List[Refund] = []
    for refund in refunds:
        lines = [
            _reverse_line(line.external_line_item_id, line.quantity, line.subtotal, order, refunded)[0]
            for line in refund.line_items
        ]
        if refund.cogs_precision == RefundCOGSPrecision.LINE_ITEM:
            cogs_reversed = sum_decimals(line.total_cogs for line in lines)
        elif refund.cogs_precision == RefundCOGSPrecision.PROPORTIONAL:
            cogs_reversed = _proportional_reversal(refund.amount, order)
        else:
            cogs_reversed = refund.total_cogs_reversed
        repriced.append(
            replace(refund, line_items=lines, total_cogs_reversed=round_currency(cogs_reversed))
        )
    return repriced


def count_cogs_sources(items: List[LineItem]) -> Dict[COGSSource, int]:
    counts: Dict[COGSSource, int] = {}
    for item in items:
        counts[item.cogs_source] = counts.get(item.cogs_source, 0) + 1
    return counts
