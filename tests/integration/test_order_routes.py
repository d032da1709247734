"""Integration tests for order lookup endpoints."""

import time
from collections.abc import Callable, Generator
from decimal import Decimal
from unittest.mock import patch
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from src.schemas.auth import TokenPayload

OWNER_ID = "550e8400-e29b-41d4-a716-446655440000"
OTHER_ID = "660e8400-e29b-41d4-a716-446655440000"
AUTH = {"Authorization": "Bearer test-token"}


def _payload(sub: str) -> TokenPayload:
    now = int(time.time())
    return TokenPayload(sub=sub, email="buyer@example.com", exp=now + 3600, iat=now)


@pytest.fixture
def as_user() -> Generator[Callable, None, None]:
    """Patch token decoding so requests authenticate as the given user id."""
    with patch("src.api.deps.decode_jwt") as mock_decode:

        def _as(sub: str) -> None:
            mock_decode.return_value = _payload(sub)

        _as(OWNER_ID)
        yield _as


def _checkout(client: TestClient, headers: dict | None = None) -> str:
    response = client.post(
        "/api/v1/orders/checkout",
        json={"items": [{"id": "sku-2", "quantity": 2}], "email": "buyer@example.com"},
        headers=headers or {},
    )
    assert response.status_code == 200
    return response.json()["orderId"]


class TestMyOrders:
    """Tests for GET /api/v1/orders/my-orders."""

    def test_requires_authentication(self, client: TestClient) -> None:
        response = client.get("/api/v1/orders/my-orders")

        assert response.status_code == 401

    def test_lists_only_own_orders(self, client: TestClient, as_user: Callable) -> None:
        own_id = _checkout(client, AUTH)
        _checkout(client)  # guest order

        response = client.get("/api/v1/orders/my-orders", headers=AUTH)

        assert response.status_code == 200
        items = response.json()["items"]
        assert [item["id"] for item in items] == [own_id]
        assert items[0]["status"] == "pending"
        assert Decimal(items[0]["total"]) == Decimal("101.00")
        assert items[0]["line_items"][0]["product_ref"] == "sku-2"


class TestGetOrder:
    """Tests for GET /api/v1/orders/{order_id}."""

    def test_owner_can_read(self, client: TestClient, as_user: Callable) -> None:
        order_id = _checkout(client, AUTH)

        response = client.get(f"/api/v1/orders/{order_id}", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == order_id
        assert data["external_reference"].startswith("ORDER-")
        assert data["currency"] == "ARS"

    def test_other_user_is_forbidden(self, client: TestClient, as_user: Callable) -> None:
        order_id = _checkout(client, AUTH)
        as_user(OTHER_ID)

        response = client.get(f"/api/v1/orders/{order_id}", headers=AUTH)

        assert response.status_code == 403

    def test_unknown_order(self, client: TestClient, as_user: Callable) -> None:
        response = client.get(f"/api/v1/orders/{uuid4()}", headers=AUTH)

        assert response.status_code == 404

    def test_requires_authentication(self, client: TestClient) -> None:
        response = client.get(f"/api/v1/orders/{UUID(OWNER_ID)}")

        assert response.status_code == 401
