"""Repository interface for the commerce ledger."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..entities import (
    COGSEntry,
    CostEntry,
    IdempotencyRecord,
    LineItem,
    Order,
    PaymentFeeConfig,
    Refund,
    ShippingTier,
    Store,
    Transaction,
    Variant,
)


class CommerceRepository(ABC):
    """
    Abstract repository for orders, catalog costs and ledger records.

    Writes are not committed here; the unit of work owns the transaction.
    """

    # =========================================================================
    # STORES & CATALOG
    # =========================================================================

    @abstractmethod
    async def find_store(self, store_id: str) -> Optional[Store]:
        pass

    @abstractmethod
    async def find_store_by_domain(self, domain: str) -> Optional[Store]:
        pass

    @abstractmethod
    async def find_variants_by_external_ids(
        self, store_id: str, external_variant_ids: Iterable[str]
    ) -> Dict[str, Variant]:
        """Map external variant id -> Variant for the ids that exist."""
        pass

    @abstractmethod
    async def find_cogs_entries(self, variant_id: str) -> List[COGSEntry]:
        """All COGS entries for a variant, sorted by effective_from."""
        pass

    async def find_cogs_entries_for_variants(
        self, variant_ids: Iterable[str]
    ) -> Dict[str, List[COGSEntry]]:
        """Batch form of find_cogs_entries. Variants without entries map to []."""
        result: Dict[str, List[COGSEntry]] = {}
        for variant_id in set(variant_ids):
            result[variant_id] = await self.find_cogs_entries(variant_id)
        return result

    @abstractmethod
    async def find_active_fee_configs(self, store_id: str) -> List[PaymentFeeConfig]:
        pass

    @abstractmethod
    async def find_active_shipping_tiers(self, store_id: str) -> List[ShippingTier]:
        pass

    @abstractmethod
    async def find_cost_entries(self, store_id: str) -> List[CostEntry]:
        """Active custom operating costs for break-even analysis."""
        pass

    # =========================================================================
    # ORDERS
    # =========================================================================

    @abstractmethod
    async def find_order(
        self, store_id: str, external_order_id: str, for_update: bool = False
    ) -> Optional[Order]:
        """
        Load an order with its line items, transactions and refunds.

        Args:
            for_update: lock the order row until the transaction ends
        """
        pass

    @abstractmethod
    async def upsert_order(self, order: Order) -> bool:
        """
        Insert or update the order row keyed on (store_id, external_order_id).

        On update the existing internal id is written back to `order.id`.

        Returns:
            True if the order was created, False if updated

        Raises:
            ConcurrencyConflictError: a concurrent insert won the unique key
        """
        pass

    @abstractmethod
    async def replace_line_items(self, order_id: str, line_items: List[LineItem]) -> None:
        pass

    @abstractmethod
    async def replace_transactions(self, order_id: str, transactions: List[Transaction]) -> None:
        pass

    @abstractmethod
    async def replace_refunds(self, order_id: str, refunds: List[Refund]) -> None:
        pass

    @abstractmethod
    async def find_orders(
        self, store_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Order]:
        """Orders created within [start, end], children loaded."""
        pass

    # =========================================================================
    # IDEMPOTENCY LEDGER
    # =========================================================================

    @abstractmethod
    async def find_idempotency_record(self, event_id: str) -> Optional[IdempotencyRecord]:
        pass

    @abstractmethod
    async def write_idempotency_record(self, record: IdempotencyRecord) -> None:
        """Insert or overwrite the record for record.event_id."""
        pass
