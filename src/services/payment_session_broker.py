"""Payment session creation for pending orders."""

import asyncio
import logging
from dataclasses import dataclass

from src.core.config import Settings
from src.models.order import Order
from src.services.payment_gateway import (
    PaymentGateway,
    PaymentProviderError,
    PaymentSession,
    PaymentSessionRequest,
    RedirectUrls,
    SessionLineItem,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionBrokerConfig:
    """Static inputs for building provider sessions."""

    redirects: RedirectUrls
    notification_url: str | None
    timeout_seconds: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionBrokerConfig":
        """Create config from application settings."""
        frontend_url = settings.frontend_url.rstrip("/")
        return cls(
            redirects=RedirectUrls(
                success=f"{frontend_url}/checkout/success",
                failure=f"{frontend_url}/checkout/error",
                pending=f"{frontend_url}/checkout/pending",
            ),
            notification_url=settings.notification_url,
            timeout_seconds=settings.payment_timeout_seconds,
        )


def build_session_request(order: Order, config: SessionBrokerConfig) -> PaymentSessionRequest:
    """Describe an order to the provider using only its own snapshot."""
    return PaymentSessionRequest(
        order_id=str(order.id),
        external_reference=order.external_reference,
        currency=order.currency,
        payer_email=order.contact_email,
        items=tuple(
            SessionLineItem(title=line.title, unit_price=line.unit_price, quantity=line.quantity)
            for line in order.line_items
        ),
        redirects=config.redirects,
        notification_url=config.notification_url,
    )


class PaymentSessionBroker:
    """Obtains a payment redirect for an order. Never mutates the order."""

    def __init__(self, gateway: PaymentGateway, config: SessionBrokerConfig) -> None:
        self.gateway = gateway
        self.config = config

    async def create_session(self, order: Order) -> PaymentSession:
        """Request a provider checkout session for a pending order.

        The provider call runs in a worker thread and is bounded by the
        configured timeout. Failures leave the order pending, so the caller
        may simply call this again.

        Args:
            order: The pending order.

        Returns:
            PaymentSession: Redirect URL and provider session id.

        Raises:
            PaymentProviderError: On provider failure or timeout.
        """
        request = build_session_request(order, self.config)

        try:
            session = await asyncio.wait_for(
                asyncio.to_thread(self.gateway.create_session, request),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                "Payment session for order %s timed out after %.1fs",
                order.id,
                self.config.timeout_seconds,
            )
            raise PaymentProviderError("Payment provider timed out") from e
        except PaymentProviderError:
            logger.error("Payment session for order %s failed; order stays pending", order.id)
            raise

        logger.info("Payment session %s created for order %s", session.provider_session_id, order.id)
        return session
