"""Integration tests for the HTTP API over SQLite."""

import json
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from profit_core.infrastructure.security import compute_signature


SHOP = "test-shop.myshopify.com"
SECRET = "test-secret"


def post_webhook(client: TestClient, topic: str, payload, signature=None, platform="shopify", webhook_id=None):
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Topic": topic,
        "X-Shopify-Shop-Domain": SHOP,
        "X-Shopify-Hmac-Sha256": signature or compute_signature(SECRET, body),
    }
    if webhook_id:
        headers["X-Shopify-Webhook-Id"] = webhook_id
    return client.post(f"/webhooks/{platform}", content=body, headers=headers)


class TestHealth:

    def test_health(self, test_client: TestClient):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness(self, test_client: TestClient):
        response = test_client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"]["api"] == "ok"


class TestWebhookEndpoint:

    def test_order_created(self, test_client: TestClient, order_payload):
        response = post_webhook(test_client, "orders/create", order_payload())

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["success"] is True
        assert body["processed"] is True
        assert body["data"]["net_profit"] == "568.00"

    def test_duplicate_delivery_is_skipped(self, test_client: TestClient, order_payload):
        post_webhook(test_client, "orders/create", order_payload())
        response = post_webhook(test_client, "orders/create", order_payload())

        assert response.status_code == 200
        assert response.json()["skipped"] is True

    def test_each_update_delivery_is_applied(self, test_client: TestClient, order_payload):
        post_webhook(test_client, "orders/updated", order_payload(), webhook_id="wh-1")
        response = post_webhook(
            test_client, "orders/updated", order_payload(total_tax="100.00"), webhook_id="wh-2"
        )

        assert response.json()["processed"] is True
        order = test_client.get("/api/v1/stores/store-1/orders/1001").json()
        assert Decimal(order["total_tax"]) == Decimal("100.00")

    def test_bad_signature_is_401(self, test_client: TestClient, order_payload):
        response = post_webhook(test_client, "orders/create", order_payload(), signature="bm9wZQ==")

        assert response.status_code == 401
        assert response.json()["error_kind"] == "signature"

    def test_malformed_body_is_400(self, test_client: TestClient):
        body = b"{not json"
        response = test_client.post(
            "/webhooks/shopify",
            content=body,
            headers={
                "X-Shopify-Topic": "orders/create",
                "X-Shopify-Shop-Domain": SHOP,
                "X-Shopify-Hmac-Sha256": compute_signature(SECRET, body),
            },
        )

        assert response.status_code == 400
        assert response.json()["error_kind"] == "malformed"

    def test_refund_for_unknown_order_is_recorded_failed(self, test_client: TestClient):
        response = post_webhook(
            test_client,
            "refunds/create",
            {"external_refund_id": "r-1", "external_order_id": "404", "amount": "10.00"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["error_kind"] == "missing_reference"

    def test_unsupported_platform_is_404(self, test_client: TestClient, order_payload):
        response = post_webhook(test_client, "orders/create", order_payload(), platform="woocommerce")
        assert response.status_code == 404


class TestOrderEndpoints:

    def test_ingest_and_read_back(self, test_client: TestClient, order_payload):
        response = test_client.post("/api/v1/stores/store-1/orders", json=order_payload())

        assert response.status_code == 200, response.text
        created = response.json()
        assert created["created"] is True
        assert Decimal(created["net_profit"]) == Decimal("568.00")
        assert Decimal(created["cogs_match_rate"]) == Decimal("100")
        assert created["execution_id"]

        response = test_client.get("/api/v1/stores/store-1/orders/1001")

        assert response.status_code == 200
        order = response.json()
        assert order["order_id"] == created["order_id"]
        assert order["source"] == "manual"
        assert Decimal(order["total_cogs"]) == Decimal("200.00")
        assert order["line_items"][0]["cogs_source"] == "manual"

    def test_replay_reports_update(self, test_client: TestClient, order_payload):
        test_client.post("/api/v1/stores/store-1/orders", json=order_payload())
        response = test_client.post("/api/v1/stores/store-1/orders", json=order_payload())

        assert response.json()["created"] is False

    def test_unknown_store_is_404(self, test_client: TestClient, order_payload):
        response = test_client.post("/api/v1/stores/store-404/orders", json=order_payload())
        assert response.status_code == 404

    def test_invalid_payload_is_422(self, test_client: TestClient, order_payload):
        response = test_client.post(
            "/api/v1/stores/store-1/orders", json=order_payload(line_items=[{"quantity": 1}])
        )
        assert response.status_code == 422

    def test_missing_order_is_404(self, test_client: TestClient):
        response = test_client.get("/api/v1/stores/store-1/orders/9999")
        assert response.status_code == 404


class TestRefundEndpoint:

    def test_apply_refund(self, test_client: TestClient, order_payload):
        test_client.post("/api/v1/stores/store-1/orders", json=order_payload())

        response = test_client.post(
            "/api/v1/stores/store-1/refunds",
            json={
                "external_refund_id": "r-1",
                "external_order_id": "1001",
                "amount": "500.00",
                "line_items": [{"external_line_item_id": "li-1", "quantity": 1}],
            },
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["cogs_precision"] == "line_item"
        assert Decimal(body["cogs_reversed"]) == Decimal("100.00")
        assert Decimal(body["order_net_profit"]) == Decimal("168.00")

    def test_unknown_order_is_404(self, test_client: TestClient):
        response = test_client.post(
            "/api/v1/stores/store-1/refunds",
            json={"external_refund_id": "r-1", "external_order_id": "404", "amount": "1.00"},
        )
        assert response.status_code == 404


class TestSyncEndpoints:

    def test_sync_pages_through_orders(self, test_client: TestClient, order_payload):
        orders = [order_payload(external_order_id=str(2000 + i)) for i in range(3)]

        response = test_client.post(
            "/api/v1/stores/store-1/sync", json={"orders": orders, "page_size": 2}
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["success"] is True
        assert body["pages"] == 2
        assert body["created"] == 3

    def test_cancel_without_running_sync(self, test_client: TestClient):
        response = test_client.post("/api/v1/stores/store-1/sync/cancel")

        assert response.status_code == 200
        assert response.json() == {"store_id": "store-1", "cancelled": False}


class TestSummaryEndpoint:

    def test_summary_serializes_decimals_as_strings(self, test_client: TestClient, order_payload):
        test_client.post("/api/v1/stores/store-1/orders", json=order_payload())

        response = test_client.post(
            "/api/v1/stores/store-1/summary",
            json={"start": "2024-03-01T00:00:00Z", "end": "2024-03-31T23:59:59Z", "ad_spend": "100"},
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["currency"] == "SEK"
        assert body["order_count"] == 1
        assert body["profit"]["net_profit"] == "468.00"
        assert body["revenue"]["revenue_ex_vat"] == "800.00"

    @pytest.mark.parametrize("store_id", ["store-404", "nope"])
    def test_unknown_store_is_404(self, test_client: TestClient, store_id):
        response = test_client.post(f"/api/v1/stores/{store_id}/summary", json={})
        assert response.status_code == 404
