"""
In-Memory Commerce Repository Implementation.

In-memory implementation for tests, demos and single-process runs.

Transactions are serialized through one asyncio.Lock and staged on a
copy of the order state; commit() publishes the copy, leaving the
context without commit discards it.
"""
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
import asyncio
import logging

from profit_core.domain.entities import (
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
from profit_core.domain.repositories import AbstractUnitOfWork, CommerceRepository
from profit_core.domain.value_objects import ExecutionID, ensure_utc


logger = logging.getLogger(__name__)


@dataclass
class _OrderState:
    orders: Dict[Tuple[str, str], Order] = field(default_factory=dict)
    idempotency: Dict[str, IdempotencyRecord] = field(default_factory=dict)


class InMemoryCommerceStore:
    """
    Shared backing state for InMemoryUnitOfWork instances.

    Catalog and cost configuration are seeded directly and are not
    transactional; orders and idempotency records are.
    """

    def __init__(self):
        self.stores: Dict[str, Store] = {}
        self.variants: Dict[str, Variant] = {}
        self.cogs_entries: Dict[str, List[COGSEntry]] = {}
        self.fee_configs: List[PaymentFeeConfig] = []
        self.shipping_tiers: List[ShippingTier] = []
        self.cost_entries: List[CostEntry] = []
        self.state = _OrderState()
        self.lock = asyncio.Lock()
        self.commits = 0

    # Seeding helpers

    def add_store(self, store: Store) -> Store:
        self.stores[store.id] = store
        return store

    def add_variant(self, variant: Variant) -> Variant:
        self.variants[variant.id] = variant
        return variant

    def add_cogs_entry(self, entry: COGSEntry) -> COGSEntry:
        entries = self.cogs_entries.setdefault(entry.variant_id, [])
        entries.append(entry)
        entries.sort(key=lambda e: e.effective_from)
        return entry

    def add_fee_config(self, config: PaymentFeeConfig) -> PaymentFeeConfig:
        self.fee_configs.append(config)
        return config

    def add_shipping_tier(self, tier: ShippingTier) -> ShippingTier:
        self.shipping_tiers.append(tier)
        return tier

    def add_cost_entry(self, entry: CostEntry) -> CostEntry:
        self.cost_entries.append(entry)
        return entry

    @property
    def orders(self) -> List[Order]:
        """Committed orders."""
        return list(self.state.orders.values())


class InMemoryCommerceRepository(CommerceRepository):
    """
    In-memory implementation of CommerceRepository.

    Reads and writes go to the staged state of the owning unit of work.
    """

    def __init__(self, store: InMemoryCommerceStore, state: _OrderState):
        self._store = store
        self._state = state

    # =========================================================================
    # STORES & CATALOG
    # =========================================================================

    async def find_store(self, store_id: str) -> Optional[Store]:
        return self._store.stores.get(store_id)

    async def find_store_by_domain(self, domain: str) -> Optional[Store]:
        wanted = domain.strip().lower()
        for store in self._store.stores.values():
            if store.domain.lower() == wanted:
                return store
        return None

    async def find_variants_by_external_ids(
        self, store_id: str, external_variant_ids: Iterable[str]
    ) -> Dict[str, Variant]:
        wanted = set(external_variant_ids)
        return {
            v.external_variant_id: v
            for v in self._store.variants.values()
            if v.store_id == store_id and v.external_variant_id in wanted
        }

    async def find_cogs_entries(self, variant_id: str) -> List[COGSEntry]:
        return list(self._store.cogs_entries.get(variant_id, []))

    async def find_active_fee_configs(self, store_id: str) -> List[PaymentFeeConfig]:
        return [
            c for c in self._store.fee_configs
            if c.is_active and c.store_id in (None, store_id)
        ]

    async def find_active_shipping_tiers(self, store_id: str) -> List[ShippingTier]:
        tiers = [
            t for t in self._store.shipping_tiers
            if t.is_active and t.store_id in (None, store_id)
        ]
        return sorted(tiers, key=lambda t: t.min_items)

    async def find_cost_entries(self, store_id: str) -> List[CostEntry]:
        return [
            e for e in self._store.cost_entries
            if e.is_active and e.store_id in (None, store_id)
        ]

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def find_order(
        self, store_id: str, external_order_id: str, for_update: bool = False
    ) -> Optional[Order]:
        order = self._state.orders.get((store_id, external_order_id))
        return deepcopy(order) if order is not None else None

    async def upsert_order(self, order: Order) -> bool:
        existing = self._state.orders.get(order.key)
        if existing is not None:
            order.id = existing.id
        self._state.orders[order.key] = deepcopy(order)
        return existing is None

    def _staged_order(self, order_id: str) -> Order:
        for order in self._state.orders.values():
            if order.id == order_id:
                return order
        raise KeyError(f"Order {order_id} is not staged")

    async def replace_line_items(self, order_id: str, line_items: List[LineItem]) -> None:
        self._staged_order(order_id).line_items = deepcopy(line_items)

    async def replace_transactions(self, order_id: str, transactions: List[Transaction]) -> None:
        self._staged_order(order_id).transactions = deepcopy(transactions)

    async def replace_refunds(self, order_id: str, refunds: List[Refund]) -> None:
        self._staged_order(order_id).refunds = deepcopy(refunds)

    async def find_orders(
        self, store_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Order]:
        start, end = ensure_utc(start), ensure_utc(end)
        orders = [
            deepcopy(o)
            for o in self._state.orders.values()
            if o.store_id == store_id
            and (start is None or o.created_at >= start)
            and (end is None or o.created_at <= end)
        ]
        return sorted(orders, key=lambda o: o.created_at)

    # =========================================================================
    # IDEMPOTENCY LEDGER
    # =========================================================================

    async def find_idempotency_record(self, event_id: str) -> Optional[IdempotencyRecord]:
        return self._state.idempotency.get(event_id)

    async def write_idempotency_record(self, record: IdempotencyRecord) -> None:
        self._state.idempotency[record.event_id] = record


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """
    Unit of work over an InMemoryCommerceStore.

    Usage:
        store = InMemoryCommerceStore()
        uow_factory = lambda: InMemoryUnitOfWork(store)
    """

    def __init__(self, store: InMemoryCommerceStore):
        self._store = store
        self._staged: Optional[_OrderState] = None
        self._commerce: Optional[InMemoryCommerceRepository] = None
        self.execution_id = ExecutionID.generate()

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        await self._store.lock.acquire()
        self._staged = deepcopy(self._store.state)
        self._commerce = InMemoryCommerceRepository(self._store, self._staged)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self._staged = None
        self._commerce = None
        self._store.lock.release()

    @property
    def commerce(self) -> InMemoryCommerceRepository:
        if self._commerce is None:
            raise RuntimeError("UnitOfWork not initialized. Use async context manager.")
        return self._commerce

    async def commit(self) -> None:
        if self._staged is None:
            raise RuntimeError("UnitOfWork not initialized. Use async context manager.")
        self._store.state = deepcopy(self._staged)
        self._store.commits += 1

    async def rollback(self) -> None:
        if self._staged is None:
            raise RuntimeError("UnitOfWork not initialized. Use async context manager.")
        self._staged = deepcopy(self._store.state)
        self._commerce = InMemoryCommerceRepository(self._store, self._staged)
