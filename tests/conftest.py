"""Shared fixtures: a seeded in-memory store and normalized event builders."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

import pytest

from profit_core.application.dtos import OrderEvent, RefundEvent
from profit_core.domain.entities import COGSEntry, Store, Variant
from profit_core.infrastructure.persistence import InMemoryCommerceStore, InMemoryUnitOfWork


STORE_ID = "store-1"
STORE_DOMAIN = "test-shop.myshopify.com"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def commerce_store() -> InMemoryCommerceStore:
    """
    One active store with two catalog variants.

    Hoodie (44001) costs 100.00 until end of June 2024 and 120.00 after.
    Cap (44002) costs 40.00 from 2024-01-01.
    """
    store = InMemoryCommerceStore()
    store.add_store(Store(id=STORE_ID, domain=STORE_DOMAIN, name="Test Shop", currency="SEK"))
    store.add_variant(
        Variant(id="var-hoodie", store_id=STORE_ID, external_variant_id="44001", title="Hoodie", sku="HOOD-1")
    )
    store.add_variant(
        Variant(id="var-cap", store_id=STORE_ID, external_variant_id="44002", title="Cap", sku="CAP-1")
    )
    store.add_cogs_entry(
        COGSEntry(
            variant_id="var-hoodie",
            cost_price=Decimal("100.00"),
            effective_from=utc(2024, 1, 1),
            effective_to=utc(2024, 6, 30, 23, 59, 59),
        )
    )
    store.add_cogs_entry(
        COGSEntry(variant_id="var-hoodie", cost_price=Decimal("120.00"), effective_from=utc(2024, 7, 1))
    )
    store.add_cogs_entry(
        COGSEntry(variant_id="var-cap", cost_price=Decimal("40.00"), effective_from=utc(2024, 1, 1))
    )
    return store


@pytest.fixture
def uow_factory(commerce_store):
    return lambda: InMemoryUnitOfWork(commerce_store)


@pytest.fixture
def order_payload():
    """
    Builder for a raw order payload.

    Default: two hoodies at 500.00 each, 200.00 VAT included, one
    successful 1000.00 sale through stripe.
    """
    def build(**overrides) -> Dict[str, Any]:
        payload = {
            "external_order_id": "1001",
            "order_number": "#1001",
            "currency": "SEK",
            "financial_status": "paid",
            "subtotal_price": "1000.00",
            "total_discounts": "0",
            "total_shipping_price": "0",
            "total_tax": "200.00",
            "total_price": "1000.00",
            "created_at": "2024-03-15T10:30:00Z",
            "line_items": [
                {
                    "external_line_item_id": "li-1",
                    "external_variant_id": "44001",
                    "title": "Hoodie",
                    "quantity": 2,
                    "unit_price": "500.00",
                }
            ],
            "transactions": [
                {
                    "external_transaction_id": "tx-1",
                    "kind": "sale",
                    "status": "success",
                    "amount": "1000.00",
                    "gateway": "stripe",
                }
            ],
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def order_event(order_payload):
    def build(**overrides) -> OrderEvent:
        return OrderEvent.model_validate(order_payload(**overrides))

    return build


@pytest.fixture
def refund_event():
    def build(**overrides) -> RefundEvent:
        payload = {
            "external_refund_id": "r-1",
            "external_order_id": "1001",
            "amount": "500.00",
            "processed_at": "2024-03-20T09:00:00Z",
            "line_items": [{"external_line_item_id": "li-1", "quantity": 1, "subtotal": "500.00"}],
        }
        payload.update(overrides)
        return RefundEvent.model_validate(payload)

    return build
