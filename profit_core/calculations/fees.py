"""
Fee & Shipping-Tier Resolver.

Payment processing fees per gateway, and shipping cost per item-count
tier and zone.
"""
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from profit_core.domain.entities import Order, PaymentFeeConfig, ShippingTier, Transaction
from profit_core.domain.enums import FeeSource, FeeType
from profit_core.domain.value_objects import ZERO, round_currency, to_decimal


DEFAULT_FEE_RATE = Decimal("0.029")
DEFAULT_FIXED_FEE = Decimal("3.00")


# =============================================================================
# PAYMENT FEES
# =============================================================================

def calculate_fee_for_config(amount: Decimal, config: PaymentFeeConfig) -> Decimal:
    """Apply one fee schedule to a transaction amount."""
    amount = to_decimal(amount)
    if amount <= ZERO:
        return ZERO

    if config.fee_type == FeeType.PERCENTAGE_ONLY:
        fee = amount * config.percentage_rate
    elif config.fee_type == FeeType.FIXED_ONLY:
        fee = config.fixed_fee
    elif config.fee_type == FeeType.PERCENTAGE_PLUS_FIXED:
        fee = amount * config.percentage_rate + config.fixed_fee
    else:
        raise ValueError(f"Unknown fee type: {config.fee_type}")

    return round_currency(fee)


class FeeResolver:
    """
    Resolves processing fees from a store's active gateway configs.

    A fee reported by the platform always wins; local computation is
    only a fallback for transactions without one.
    """

    def __init__(
        self,
        configs: Iterable[PaymentFeeConfig] = (),
        default_rate: Decimal = DEFAULT_FEE_RATE,
        default_fixed_fee: Decimal = DEFAULT_FIXED_FEE,
    ):
        self.configs = [c for c in configs if c.is_active]
        self.default_config = PaymentFeeConfig(
            gateway="default",
            fee_type=FeeType.PERCENTAGE_PLUS_FIXED,
            percentage_rate=to_decimal(default_rate),
            fixed_fee=to_decimal(default_fixed_fee),
        )

    def find_config(self, gateway: Optional[str]) -> Optional[PaymentFeeConfig]:
        """Exact, case-insensitive gateway match."""
        if not gateway:
            return None
        wanted = gateway.strip().casefold()
        for config in self.configs:
            if config.gateway.strip().casefold() == wanted:
                return config
        return None

    def calculate_fee(self, amount: Decimal, gateway: Optional[str]) -> Decimal:
        config = self.find_config(gateway) or self.default_config
        return calculate_fee_for_config(amount, config)

    def estimate_fee(self, amount: Decimal) -> Decimal:
        """Fee at the default rate, for orders without any transaction data."""
        return calculate_fee_for_config(amount, self.default_config)

    def resolve_transaction_fee(self, transaction: Transaction) -> Tuple[Decimal, FeeSource]:
        if not transaction.is_fee_eligible:
            return ZERO, FeeSource.NOT_APPLICABLE
        if transaction.reported_fee is not None:
            return round_currency(transaction.reported_fee), FeeSource.PLATFORM_REPORTED
        return self.calculate_fee(transaction.amount, transaction.gateway), FeeSource.CALCULATED

    def apply_to_transactions(self, transactions: Sequence[Transaction]) -> Decimal:
        """Set payment_fee / fee_source on each transaction; return the total."""
        total = ZERO
        for transaction in transactions:
            fee, source = self.resolve_transaction_fee(transaction)
            transaction.payment_fee = fee
            transaction.fee_source = source
            total += fee
        return round_currency(total)


# =============================================================================
# SHIPPING
# =============================================================================

class ShippingCostResolver:
    """
    Selects a shipping tier for an item count and zone.

    Zone-specific tiers are preferred; zone-agnostic tiers (zone=None)
    are used when the zone has no table or no tier in it fits.
    """

    def __init__(self, tiers: Iterable[ShippingTier] = ()):
        self.tiers = sorted((t for t in tiers if t.is_active), key=lambda t: t.min_items)

    def _candidate_tables(self, zone: Optional[str]) -> List[List[ShippingTier]]:
        tables = []
        if zone:
            wanted = zone.strip().casefold()
            zone_tiers = [t for t in self.tiers if t.zone and t.zone.strip().casefold() == wanted]
            if zone_tiers:
                tables.append(zone_tiers)
        generic = [t for t in self.tiers if t.zone is None]
        if generic:
            tables.append(generic)
        return tables

    @staticmethod
    def _select_from(tiers: List[ShippingTier], item_count: int) -> Optional[ShippingTier]:
        for tier in tiers:
            if tier.contains(item_count):
                return tier
        highest = tiers[-1]
        if item_count > highest.min_items:
            return highest
        return None

    def select_tier(self, item_count: int, zone: Optional[str] = None) -> Optional[ShippingTier]:
        if item_count <= 0:
            return None
        for table in self._candidate_tables(zone):
            tier = self._select_from(table, item_count)
            if tier is not None:
                return tier
        return None

    def calculate(self, item_count: int, zone: Optional[str] = None) -> Decimal:
        tier = self.select_tier(item_count, zone)
        if tier is None:
            return ZERO
        cost = tier.cost
        extra_items = item_count - tier.min_items
        if extra_items > 0 and tier.cost_per_additional_item > ZERO:
            cost += tier.cost_per_additional_item * extra_items
        return round_currency(cost)

    def calculate_for_order(self, order: Order) -> Decimal:
        """Shipping cost for an order's physical (non-exempt) items."""
        return self.calculate(order.physical_item_count, order.shipping_country)


def validate_shipping_tiers(tiers: Sequence[ShippingTier]) -> List[str]:
    """
    Check one zone's tier table.

    Returns a list of human-readable problems; empty when valid.
    """
    errors: List[str] = []
    if not tiers:
        return ["At least one shipping tier is required"]

    ordered = sorted(tiers, key=lambda t: t.min_items)
    if ordered[0].min_items != 1:
        errors.append(f"First tier must start at 1 item, starts at {ordered[0].min_items}")

    for index, tier in enumerate(ordered):
        label = f"Tier {index + 1}"
        if tier.cost < ZERO or tier.cost_per_additional_item < ZERO:
            errors.append(f"{label}: costs must not be negative")
        if tier.max_items is not None and tier.max_items < tier.min_items:
            errors.append(f"{label}: max_items {tier.max_items} is below min_items {tier.min_items}")

        if index == len(ordered) - 1:
            continue
        following = ordered[index + 1]
        if tier.max_items is None:
            errors.append(f"{label}: only the last tier may be open-ended")
        elif following.min_items <= tier.max_items:
            errors.append(f"{label}: overlaps with tier {index + 2}")
        elif following.min_items > tier.max_items + 1:
            errors.append(
                f"{label}: gap between {tier.max_items} and {following.min_items} items"
            )

    return errors


def default_shipping_tiers() -> List[ShippingTier]:
    """Reference tier table (domestic parcel rates)."""
    return [
        ShippingTier(min_items=1, max_items=1, cost=Decimal("32.00")),
        ShippingTier(min_items=2, max_items=2, cost=Decimal("42.00")),
        ShippingTier(
            min_items=3,
            max_items=5,
            cost=Decimal("52.00"),
            cost_per_additional_item=Decimal("5.00"),
        ),
        ShippingTier(
            min_items=6,
            max_items=None,
            cost=Decimal("72.00"),
            cost_per_additional_item=Decimal("3.00"),
        ),
    ]


def calculate_shipping_savings(
    resolver: ShippingCostResolver, item_count: int, zone: Optional[str] = None
) -> Decimal:
    """How much cheaper one combined shipment is than shipping items one by one."""
    if item_count <= 1:
        return ZERO
    separately = resolver.calculate(1, zone) * item_count
    combined = resolver.calculate(item_count, zone)
    return round_currency(separately - combined)
