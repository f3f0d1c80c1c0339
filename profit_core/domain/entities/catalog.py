"""
Catalog entities: stores, variants and their cost timelines.

COGS entries belong to a variant, independent of any order.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..enums import COGSSource
from ..value_objects import ensure_utc, new_entity_id


@dataclass
class Store:
    """A connected retail store."""
    id: str
    domain: str
    name: Optional[str] = None
    currency: str = "SEK"
    is_active: bool = True


@dataclass
class Variant:
    """Catalog variant a line item can be matched to."""
    id: str
    store_id: str
    external_variant_id: str
    title: Optional[str] = None
    sku: Optional[str] = None
    requires_shipping: bool = True


@dataclass(frozen=True)
class COGSEntry:
    """
    Unit cost of a variant over a period.

    effective_to=None means the entry is currently active.
    """
    variant_id: str
    cost_price: Decimal
    effective_from: datetime
    effective_to: Optional[datetime] = None
    source: COGSSource = COGSSource.MANUAL
    id: str = field(default_factory=new_entity_id)

    def __post_init__(self):
        object.__setattr__(self, "effective_from", ensure_utc(self.effective_from))
        object.__setattr__(self, "effective_to", ensure_utc(self.effective_to))
        if self.cost_price < 0:
            raise ValueError(f"Invalid cost_price: {self.cost_price}")
        if self.effective_to is not None and self.effective_to < self.effective_from:
            raise ValueError(
                f"effective_to {self.effective_to} precedes effective_from {self.effective_from}"
            )

    def covers(self, at: datetime) -> bool:
        """Inclusive on both ends."""
        if at < self.effective_from:
            return False
        return self.effective_to is None or at <= self.effective_to
