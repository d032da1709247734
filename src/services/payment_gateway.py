"""Payment provider adapters.

Provider-specific field names stay in this module. The rest of the
settlement flow sees PaymentSessionRequest, PaymentSession and
PaymentNotification only.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

import mercadopago
import requests
import stripe

from src.core.config import get_settings
from src.core.mercadopago import get_mercadopago_sdk
from src.core.stripe import get_stripe
from src.models.order import PaymentNotification

logger = logging.getLogger(__name__)


class PaymentProviderError(Exception):
    """Raised when the payment provider fails, rejects, or times out."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class SessionLineItem:
    title: str
    unit_price: Decimal
    quantity: int


@dataclass(frozen=True)
class RedirectUrls:
    """Where the provider sends the customer after a payment attempt.

    These are UX redirects only; they are not proof of payment.
    """

    success: str
    failure: str
    pending: str


@dataclass(frozen=True)
class PaymentSessionRequest:
    """Provider-neutral description of an order to collect payment for."""

    order_id: str
    external_reference: str
    currency: str
    payer_email: str
    items: tuple[SessionLineItem, ...]
    redirects: RedirectUrls
    notification_url: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentSession:
    redirect_url: str
    provider_session_id: str


class PaymentGateway(Protocol):
    """Narrow boundary to a payment provider."""

    def create_session(self, request: PaymentSessionRequest) -> PaymentSession: ...

    def get_payment(self, payment_id: str) -> PaymentNotification: ...


class MercadoPagoGateway:
    """Mercado Pago Checkout Pro: preferences for sessions, payments for lookups."""

    def __init__(self, sdk: mercadopago.SDK | None = None) -> None:
        self.sdk = sdk or get_mercadopago_sdk()

    def create_session(self, request: PaymentSessionRequest) -> PaymentSession:
        preference_data: dict[str, Any] = {
            "items": [
                {
                    "title": item.title,
                    "unit_price": float(item.unit_price),
                    "quantity": item.quantity,
                    "currency_id": request.currency,
                }
                for item in request.items
            ],
            "external_reference": request.external_reference,
            "metadata": {"order_id": request.order_id, **request.metadata},
            "payer": {"email": request.payer_email},
            "back_urls": {
                "success": request.redirects.success,
                "failure": request.redirects.failure,
                "pending": request.redirects.pending,
            },
            "auto_return": "approved",
        }
        if request.notification_url:
            preference_data["notification_url"] = request.notification_url

        preference = self._call("create preference", self.sdk.preference().create, preference_data)
        return PaymentSession(
            redirect_url=preference["init_point"],
            provider_session_id=str(preference["id"]),
        )

    def get_payment(self, payment_id: str) -> PaymentNotification:
        payment = self._call("get payment", self.sdk.payment().get, payment_id)
        return PaymentNotification(
            payment_id=str(payment.get("id", payment_id)),
            status=str(payment.get("status") or ""),
            external_reference=payment.get("external_reference"),
        )

    @staticmethod
    def _call(action: str, method: Any, *args: Any) -> dict[str, Any]:
        """Invoke an SDK method and unwrap its {"status", "response"} envelope."""
        try:
            result = method(*args)
        except requests.RequestException as e:
            logger.error("Mercado Pago %s failed: %s", action, str(e))
            raise PaymentProviderError(f"Mercado Pago {action} failed: {e}") from e

        status_code = result.get("status")
        response = result.get("response") or {}
        if status_code not in (200, 201):
            message = response.get("message") if isinstance(response, dict) else None
            logger.error("Mercado Pago %s returned %s: %s", action, status_code, message)
            raise PaymentProviderError(
                f"Mercado Pago {action} returned {status_code}",
                status_code=status_code,
            )
        return response


# Stripe checkout session states translated to the provider-neutral vocabulary
STRIPE_PAYMENT_STATUSES = {
    "paid": "approved",
    "no_payment_required": "approved",
}


class StripeGateway:
    """Stripe Checkout: one-off payment sessions keyed by client_reference_id."""

    def __init__(self) -> None:
        self.stripe = get_stripe()

    def create_session(self, request: PaymentSessionRequest) -> PaymentSession:
        currency = request.currency.lower()
        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "unit_amount": int((item.unit_price * 100).to_integral_value()),
                        "product_data": {"name": item.title},
                    },
                    "quantity": item.quantity,
                }
                for item in request.items
            ],
            "client_reference_id": request.external_reference,
            "customer_email": request.payer_email,
            # Stripe has a single cancel destination and no pending redirect
            "success_url": request.redirects.success,
            "cancel_url": request.redirects.failure,
            "metadata": {
                "order_id": request.order_id,
                "external_reference": request.external_reference,
                **request.metadata,
            },
        }

        try:
            session = self.stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error("Stripe error creating checkout session: %s", str(e))
            raise PaymentProviderError(f"Stripe checkout session failed: {e}", status_code=e.http_status) from e

        return PaymentSession(redirect_url=session.url, provider_session_id=session.id)

    def get_payment(self, payment_id: str) -> PaymentNotification:
        """Look up a checkout session and report its payment state."""
        try:
            session = self.stripe.checkout.Session.retrieve(payment_id)
        except stripe.StripeError as e:
            logger.error("Stripe error retrieving checkout session %s: %s", payment_id, str(e))
            raise PaymentProviderError(f"Stripe session lookup failed: {e}", status_code=e.http_status) from e

        session_status = getattr(session, "status", None)
        payment_status = getattr(session, "payment_status", None)
        if session_status == "expired":
            status = "cancelled"
        else:
            status = STRIPE_PAYMENT_STATUSES.get(payment_status, payment_status or session_status or "")

        payment_intent = getattr(session, "payment_intent", None)
        return PaymentNotification(
            payment_id=str(payment_intent or session.id),
            status=status,
            external_reference=getattr(session, "client_reference_id", None),
        )


def get_payment_gateway() -> PaymentGateway:
    """Build the gateway for the configured PAYMENT_PROVIDER."""
    settings = get_settings()
    if settings.payment_provider == "stripe":
        return StripeGateway()
    return MercadoPagoGateway()
