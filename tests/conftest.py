"""Pytest configuration and fixtures."""

import os
import time
from collections.abc import Callable, Generator
from decimal import Decimal
from typing import Any
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("ORDER_STORE_BACKEND", "memory")
os.environ.setdefault("PAYMENT_PROVIDER", "mercadopago")
os.environ.setdefault("MERCADOPAGO_ACCESS_TOKEN", "TEST-mercadopago-access-token")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("FRONTEND_URL", "http://localhost:3000")
os.environ.setdefault("STORE_CURRENCY", "ARS")

from src.models.order import CatalogItem, Order, PaymentNotification  # noqa: E402
from src.services.order_store import InMemoryOrderStore, reset_order_store  # noqa: E402
from src.services.payment_gateway import (  # noqa: E402
    PaymentProviderError,
    PaymentSession,
    PaymentSessionRequest,
)
from src.services.webhook_verifier import build_manifest, compute_signature  # noqa: E402

WEBHOOK_SECRET = os.environ["PAYMENT_WEBHOOK_SECRET"]


class FakeGateway:
    """In-process PaymentGateway recording every call."""

    def __init__(self) -> None:
        self.requests: list[PaymentSessionRequest] = []
        self.lookups: list[str] = []
        self.payments: dict[str, PaymentNotification] = {}
        self.create_error: Exception | None = None

    def create_session(self, request: PaymentSessionRequest) -> PaymentSession:
        if self.create_error is not None:
            raise self.create_error
        self.requests.append(request)
        number = len(self.requests)
        return PaymentSession(
            redirect_url=f"https://pay.example.com/checkout/{number}",
            provider_session_id=f"pref-{number}",
        )

    def get_payment(self, payment_id: str) -> PaymentNotification:
        self.lookups.append(payment_id)
        if payment_id not in self.payments:
            raise PaymentProviderError(f"Payment {payment_id} not found", status_code=404)
        return self.payments[payment_id]

    def approve(self, payment_id: str, external_reference: str, status: str = "approved") -> None:
        self.payments[payment_id] = PaymentNotification(
            payment_id=payment_id,
            status=status,
            external_reference=external_reference,
        )


class FakeNotifier:
    """Notifier that records confirmations instead of sending email."""

    def __init__(self) -> None:
        self.sent: list[Order] = []

    async def send_order_confirmation(self, order: Order) -> dict[str, Any]:
        self.sent.append(order)
        return {"success": True, "email_id": f"email-{len(self.sent)}"}


@pytest.fixture
def catalog() -> list[CatalogItem]:
    """Catalog used across tests: sku-1 is the end-to-end scenario item."""
    return [
        CatalogItem(id="sku-1", name="Remera", price=Decimal("100"), stock=10),
        CatalogItem(id="sku-2", name="Gorra", price=Decimal("50.50"), stock=3),
    ]


@pytest.fixture
def memory_store(catalog: list[CatalogItem]) -> Generator[InMemoryOrderStore, None, None]:
    """Provide an in-memory store installed as the process-wide store."""
    store = InMemoryOrderStore(catalog)
    reset_order_store(store)
    yield store
    reset_order_store()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def fake_notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def client(
    memory_store: InMemoryOrderStore,
    fake_gateway: FakeGateway,
    fake_notifier: FakeNotifier,
) -> Generator[TestClient, None, None]:
    """Provide a test client wired to the in-memory store and fakes.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with patch("src.services.checkout_service.get_payment_gateway", return_value=fake_gateway), \
         patch("src.services.checkout_service.EmailService", return_value=fake_notifier):
        with TestClient(app) as test_client:
            yield test_client


@pytest.fixture
def sign_webhook() -> Callable[..., dict[str, str]]:
    """Build x-signature / x-request-id headers for a payment notification."""

    def _sign(
        payment_id: str | None,
        secret: str = WEBHOOK_SECRET,
        request_id: str = "req-123",
        ts: str | None = None,
    ) -> dict[str, str]:
        ts = ts or str(int(time.time()))
        digest = compute_signature(secret, build_manifest(payment_id, request_id, ts))
        return {
            "x-signature": f"ts={ts},v1={digest}",
            "x-request-id": request_id,
            "content-type": "application/json",
        }

    return _sign
