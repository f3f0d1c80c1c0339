"""Tests for domain entity invariants."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from profit_core.domain.entities import (
    COGSEntry,
    IdempotencyRecord,
    LineItem,
    Order,
    PaymentFeeConfig,
    ShippingTier,
    Transaction,
)
from profit_core.domain.enums import (
    COGSSource,
    FinancialStatus,
    IdempotencyStatus,
    TransactionKind,
    TransactionStatus,
    WebhookTopic,
)


UTC = timezone.utc


class TestCOGSEntry:

    def test_naive_dates_are_treated_as_utc(self):
        entry = COGSEntry(variant_id="v", cost_price=Decimal("10"), effective_from=datetime(2024, 1, 1))
        assert entry.effective_from.tzinfo is not None

    def test_covers_is_inclusive_on_both_ends(self):
        entry = COGSEntry(
            variant_id="v",
            cost_price=Decimal("10"),
            effective_from=datetime(2024, 1, 1, tzinfo=UTC),
            effective_to=datetime(2024, 1, 31, tzinfo=UTC),
        )
        assert entry.covers(datetime(2024, 1, 1, tzinfo=UTC))
        assert entry.covers(datetime(2024, 1, 31, tzinfo=UTC))
        assert not entry.covers(datetime(2024, 2, 1, tzinfo=UTC))

    def test_rejects_negative_cost(self):
        with pytest.raises(ValueError):
            COGSEntry(variant_id="v", cost_price=Decimal("-1"), effective_from=datetime(2024, 1, 1, tzinfo=UTC))

    def test_rejects_inverted_range(self):
        with pytest.raises(ValueError):
            COGSEntry(
                variant_id="v",
                cost_price=Decimal("1"),
                effective_from=datetime(2024, 2, 1, tzinfo=UTC),
                effective_to=datetime(2024, 1, 1, tzinfo=UTC),
            )

    def test_only_real_sources_are_exact(self):
        assert COGSSource.MANUAL.is_exact
        assert COGSSource.PLATFORM_REPORTED.is_exact
        assert not COGSSource.FALLBACK.is_exact
        assert not COGSSource.MISSING.is_exact


class TestOrder:

    def test_physical_item_count_skips_shipping_exempt_lines(self):
        order = Order(
            store_id="s",
            external_order_id="1",
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
            line_items=[
                LineItem(external_line_item_id="a", quantity=2, unit_price=Decimal("10")),
                LineItem(
                    external_line_item_id="b",
                    quantity=5,
                    unit_price=Decimal("1"),
                    requires_shipping=False,
                ),
            ],
        )
        assert order.physical_item_count == 2
        assert order.find_line_item("b").quantity == 5
        assert order.find_line_item("zzz") is None


class TestTransaction:

    @pytest.mark.parametrize(
        "kind,status,eligible",
        [
            (TransactionKind.SALE, TransactionStatus.SUCCESS, True),
            (TransactionKind.CAPTURE, TransactionStatus.SUCCESS, True),
            (TransactionKind.SALE, TransactionStatus.FAILURE, False),
            (TransactionKind.AUTHORIZATION, TransactionStatus.SUCCESS, False),
            (TransactionKind.REFUND, TransactionStatus.SUCCESS, False),
        ],
    )
    def test_fee_eligibility(self, kind, status, eligible):
        tx = Transaction(external_transaction_id="t", kind=kind, status=status, amount=Decimal("10"))
        assert tx.is_fee_eligible is eligible


class TestConfigEntities:

    def test_fee_config_rejects_negative_rates(self):
        with pytest.raises(ValueError):
            PaymentFeeConfig(gateway="stripe", percentage_rate=Decimal("-0.01"))

    def test_open_ended_tier_contains_everything_above_min(self):
        tier = ShippingTier(min_items=6, cost=Decimal("72"))
        assert tier.contains(6)
        assert tier.contains(600)
        assert not tier.contains(5)


class TestEnums:

    def test_financial_status_parse(self):
        assert FinancialStatus.parse(" PAID ") == FinancialStatus.PAID
        assert FinancialStatus.parse("something_new") is None
        assert FinancialStatus.parse(None) is None

    def test_order_topics(self):
        assert WebhookTopic.ORDERS_UPDATED.is_order_topic
        assert not WebhookTopic.REFUNDS_CREATE.is_order_topic


class TestIdempotencyRecord:

    def test_expiry(self):
        now = datetime(2024, 1, 10, tzinfo=UTC)
        record = IdempotencyRecord(
            event_id="e", status=IdempotencyStatus.PROCESSED, recorded_at=now - timedelta(seconds=61)
        )
        assert record.is_expired(now, ttl_seconds=60)
        assert not record.is_expired(now, ttl_seconds=3600)
