"""Tests for normalized event parsing."""
from decimal import Decimal

import pytest

from profit_core.application.dtos import OrderEvent, RefundEvent
from profit_core.application.dtos.order_event import LineItemEvent, parse_event
from profit_core.domain.enums import FinancialStatus, TransactionKind, TransactionStatus
from profit_core.domain.exceptions import MalformedPayloadError


class TestOrderEventParsing:

    def test_numeric_ids_become_strings(self, order_payload):
        event = parse_event(OrderEvent, order_payload(external_order_id=5123456789))
        assert event.external_order_id == "5123456789"

    def test_timestamps_are_utc(self, order_payload):
        event = parse_event(OrderEvent, order_payload(created_at="2024-03-15T12:30:00+02:00"))
        assert event.created_at.utcoffset().total_seconds() == 0
        assert event.created_at.hour == 10

    def test_unknown_financial_status_is_dropped(self, order_payload):
        event = parse_event(OrderEvent, order_payload(financial_status="on_hold"))
        assert event.financial_status is None

    def test_status_is_case_insensitive(self, order_payload):
        event = parse_event(OrderEvent, order_payload(financial_status="PARTIALLY_REFUNDED"))
        assert event.financial_status == FinancialStatus.PARTIALLY_REFUNDED

    def test_transaction_enums_are_lowercased(self, order_payload):
        payload = order_payload(
            transactions=[
                {
                    "external_transaction_id": 1,
                    "kind": "SALE",
                    "status": "Success",
                    "amount": "10",
                }
            ]
        )
        tx = parse_event(OrderEvent, payload).transactions[0]
        assert tx.kind == TransactionKind.SALE
        assert tx.status == TransactionStatus.SUCCESS

    def test_unrecognized_transaction_values_are_kept(self, order_payload):
        payload = order_payload(
            transactions=[
                {"external_transaction_id": "tx-9", "kind": "suggested_refund", "status": "Awaiting", "amount": "10"}
            ]
        )
        tx = parse_event(OrderEvent, payload).transactions[0]
        assert tx.kind == TransactionKind.OTHER
        assert tx.status == TransactionStatus.UNKNOWN

    def test_refunds_absent_means_none(self, order_payload):
        assert parse_event(OrderEvent, order_payload()).refunds is None
        assert parse_event(OrderEvent, order_payload(refunds=[])).refunds == []

    @pytest.mark.parametrize(
        "overrides",
        [
            {"subtotal_price": "-1"},
            {"subtotal_price": "abc"},
            {"created_at": None},
            {"external_order_id": None},
            {"line_items": [{"external_line_item_id": "x", "quantity": -1, "unit_price": "1"}]},
        ],
    )
    def test_invalid_payloads_are_malformed(self, order_payload, overrides):
        with pytest.raises(MalformedPayloadError):
            parse_event(OrderEvent, order_payload(**overrides))

    def test_non_object_is_malformed(self):
        with pytest.raises(MalformedPayloadError):
            parse_event(OrderEvent, ["not", "an", "object"])


class TestLineAndRefundEvents:

    def test_tax_from_tax_lines(self):
        line = LineItemEvent(
            external_line_item_id="1",
            quantity=1,
            unit_price=Decimal("100"),
            tax_lines=[Decimal("12.50"), Decimal("7.50")],
        )
        assert line.resolved_tax == Decimal("20.00")

    def test_explicit_tax_wins(self):
        line = LineItemEvent(
            external_line_item_id="1",
            quantity=1,
            unit_price=Decimal("100"),
            tax_amount=Decimal("25"),
            tax_lines=[Decimal("1")],
        )
        assert line.resolved_tax == Decimal("25")

    def test_refund_amount_from_successful_refund_transactions(self):
        event = RefundEvent.model_validate(
            {
                "external_refund_id": 77,
                "external_order_id": 1001,
                "transactions": [
                    {"external_transaction_id": "a", "kind": "refund", "status": "success", "amount": "120"},
                    {"external_transaction_id": "b", "kind": "refund", "status": "failure", "amount": "999"},
                ],
            }
        )
        assert event.external_refund_id == "77"
        assert event.resolved_amount == Decimal("120")

    def test_explicit_refund_amount_wins(self, refund_event):
        assert refund_event(amount="42.00").resolved_amount == Decimal("42.00")
