"""
Fee, shipping and operating-cost configuration entities.

CRITICAL: This file must contain ZERO imports from:
- sqlalchemy
- pydantic
- fastapi
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from ..enums import CostType, FeeType, RecurrenceType
from ..value_objects import ZERO, new_entity_id


@dataclass(frozen=True)
class PaymentFeeConfig:
    """
    Processing fee schedule for one payment gateway.

    percentage_rate is a fraction (0.029 means 2.9%).
    """
    gateway: str
    fee_type: FeeType = FeeType.PERCENTAGE_PLUS_FIXED
    percentage_rate: Decimal = ZERO
    fixed_fee: Decimal = ZERO
    is_active: bool = True
    store_id: Optional[str] = None
    id: str = field(default_factory=new_entity_id)

    def __post_init__(self):
        if self.percentage_rate < 0 or self.fixed_fee < 0:
            raise ValueError(f"Negative fee configured for gateway {self.gateway}")


@dataclass(frozen=True)
class ShippingTier:
    """
    Shipping cost for an item-count range.

    max_items=None means open-ended. zone=None means the tier applies
    to every zone without a zone-specific table.
    """
    min_items: int
    cost: Decimal
    max_items: Optional[int] = None
    cost_per_additional_item: Decimal = ZERO
    zone: Optional[str] = None
    is_active: bool = True
    store_id: Optional[str] = None
    id: str = field(default_factory=new_entity_id)

    def contains(self, item_count: int) -> bool:
        if item_count < self.min_items:
            return False
        return self.max_items is None or item_count <= self.max_items


@dataclass(frozen=True)
class CostEntry:
    """Custom operating cost used by break-even analysis."""
    name: str
    amount: Decimal
    cost_type: CostType
    start_date: date
    recurrence: RecurrenceType = RecurrenceType.NONE
    end_date: Optional[date] = None
    is_active: bool = True
    store_id: Optional[str] = None
    id: str = field(default_factory=new_entity_id)
