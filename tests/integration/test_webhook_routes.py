"""Integration tests for the payment webhook endpoint."""

import json
import logging
from collections.abc import Callable
from unittest.mock import patch
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from src.models.order import Order, OrderStatus
from src.services.order_store import InMemoryOrderStore
from src.services.webhook_verifier import WebhookVerificationConfig, WebhookVerifier

WEBHOOK_URL = "/api/v1/webhooks/payment"


def _payment_body(payment_id: str, notification_type: str = "payment") -> bytes:
    return json.dumps({"type": notification_type, "action": "payment.updated", "data": {"id": payment_id}}).encode()


def _checkout(client: TestClient, memory_store: InMemoryOrderStore, quantity: int = 2) -> Order:
    response = client.post(
        "/api/v1/orders/checkout",
        json={"items": [{"id": "sku-1", "quantity": quantity}], "email": "buyer@example.com"},
    )
    assert response.status_code == 200
    return memory_store.get_order_by_id(UUID(response.json()["orderId"]))


class TestPaymentWebhook:
    """Tests for POST /api/v1/webhooks/payment."""

    def test_end_to_end_settlement(
        self,
        client: TestClient,
        memory_store: InMemoryOrderStore,
        fake_gateway,
        fake_notifier,
        sign_webhook: Callable[..., dict[str, str]],
    ) -> None:
        order = _checkout(client, memory_store)
        assert order.total == 200
        fake_gateway.approve("pay-1", order.external_reference)

        response = client.post(WEBHOOK_URL, content=_payment_body("pay-1"), headers=sign_webhook("pay-1"))

        assert response.status_code == 200
        assert response.json() == {"received": True}
        settled = memory_store.get_order_by_id(order.id)
        assert settled.status == OrderStatus.PAID
        assert settled.payment_provider_id == "pay-1"
        assert memory_store.get_item("sku-1").stock == 8
        assert [o.id for o in fake_notifier.sent] == [order.id]

    def test_redelivery_is_acknowledged_without_side_effects(
        self,
        client: TestClient,
        memory_store: InMemoryOrderStore,
        fake_gateway,
        fake_notifier,
        sign_webhook: Callable[..., dict[str, str]],
    ) -> None:
        order = _checkout(client, memory_store)
        fake_gateway.approve("pay-1", order.external_reference)

        for _ in range(3):
            response = client.post(WEBHOOK_URL, content=_payment_body("pay-1"), headers=sign_webhook("pay-1"))
            assert response.status_code == 200

        assert memory_store.get_item("sku-1").stock == 8
        assert len(fake_notifier.sent) == 1

    def test_invalid_signature_is_rejected_without_mutation(
        self,
        client: TestClient,
        memory_store: InMemoryOrderStore,
        fake_gateway,
        sign_webhook: Callable[..., dict[str, str]],
    ) -> None:
        order = _checkout(client, memory_store)
        fake_gateway.approve("pay-1", order.external_reference)

        response = client.post(
            WEBHOOK_URL,
            content=_payment_body("pay-1"),
            headers=sign_webhook("pay-1", secret="attacker-secret"),
        )

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"
        assert memory_store.get_order_by_id(order.id).status == OrderStatus.PENDING
        assert memory_store.get_item("sku-1").stock == 10
        assert fake_gateway.lookups == []

    def test_missing_signature(self, client: TestClient) -> None:
        response = client.post(WEBHOOK_URL, content=_payment_body("pay-1"))

        assert response.status_code == 401

    def test_unconfigured_secret_rejects_everything(
        self, client: TestClient, sign_webhook: Callable[..., dict[str, str]]
    ) -> None:
        verifier = WebhookVerifier(WebhookVerificationConfig(secret=""))

        with patch("src.api.routes.webhooks.get_webhook_verifier", return_value=verifier):
            response = client.post(WEBHOOK_URL, content=_payment_body("pay-1"), headers=sign_webhook("pay-1"))

        assert response.status_code == 401

    def test_unmapped_status_is_acknowledged(
        self,
        client: TestClient,
        memory_store: InMemoryOrderStore,
        fake_gateway,
        sign_webhook: Callable[..., dict[str, str]],
    ) -> None:
        order = _checkout(client, memory_store)
        fake_gateway.approve("pay-1", order.external_reference, status="in_mediation")

        response = client.post(WEBHOOK_URL, content=_payment_body("pay-1"), headers=sign_webhook("pay-1"))

        assert response.status_code == 200
        assert memory_store.get_order_by_id(order.id).status == OrderStatus.PENDING
        assert memory_store.get_item("sku-1").stock == 10

    def test_unknown_order_is_acknowledged(
        self, client: TestClient, fake_gateway, sign_webhook: Callable[..., dict[str, str]]
    ) -> None:
        fake_gateway.approve("pay-7", "ORDER-DOES-NOT-EXIST")

        response = client.post(WEBHOOK_URL, content=_payment_body("pay-7"), headers=sign_webhook("pay-7"))

        assert response.status_code == 200
        assert response.json() == {"received": True}

    def test_non_payment_topic_is_acknowledged(
        self, client: TestClient, fake_gateway, sign_webhook: Callable[..., dict[str, str]]
    ) -> None:
        response = client.post(
            WEBHOOK_URL,
            content=_payment_body("55", notification_type="merchant_order"),
            headers=sign_webhook("55"),
        )

        assert response.status_code == 200
        assert fake_gateway.lookups == []

    def test_reconciliation_failure_is_acknowledged(
        self,
        client: TestClient,
        memory_store: InMemoryOrderStore,
        fake_gateway,
        sign_webhook: Callable[..., dict[str, str]],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        order = _checkout(client, memory_store)
        fake_gateway.approve("pay-1", order.external_reference)

        with patch.object(memory_store, "get_order", side_effect=RuntimeError("connection refused")), \
             caplog.at_level(logging.ERROR, logger="src.api.routes.webhooks"):
            response = client.post(WEBHOOK_URL, content=_payment_body("pay-1"), headers=sign_webhook("pay-1"))

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert "acknowledged anyway" in caplog.text
        assert memory_store.get_order_by_id(order.id).status == OrderStatus.PENDING
        assert memory_store.get_item("sku-1").stock == 10

    def test_stale_signature_timestamp_is_rejected(
        self, client: TestClient, fake_gateway, sign_webhook: Callable[..., dict[str, str]]
    ) -> None:
        response = client.post(
            WEBHOOK_URL,
            content=_payment_body("pay-1"),
            headers=sign_webhook("pay-1", ts="1700000000"),
        )

        assert response.status_code == 401
        assert fake_gateway.lookups == []
