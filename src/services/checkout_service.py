"""Checkout and order business logic service."""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from src.core.config import get_settings
from src.models.order import CartItem, Order
from src.services.cart_validator import CartValidator
from src.services.email_service import EmailService
from src.services.order_ledger import OrderLedger
from src.services.order_store import OrderStore, get_order_store
from src.services.payment_gateway import PaymentGateway, get_payment_gateway
from src.services.payment_session_broker import PaymentSessionBroker, SessionBrokerConfig
from src.services.settlement_reconciler import DeferCallback, ReconcileOutcome, SettlementReconciler
from src.services.webhook_verifier import VerifiedNotification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    redirect_url: str
    provider_session_id: str


class CheckoutService:
    """Wires the settlement components together for the API routes."""

    def __init__(
        self,
        store: OrderStore | None = None,
        gateway: PaymentGateway | None = None,
    ) -> None:
        """Initialize checkout service.

        Args:
            store: Optional document store for testing.
            gateway: Optional payment gateway for testing.
        """
        self.settings = get_settings()
        self.store = store or get_order_store()
        self.gateway = gateway or get_payment_gateway()
        self.validator = CartValidator(self.store)
        self.ledger = OrderLedger(self.store)
        self.broker = PaymentSessionBroker(self.gateway, SessionBrokerConfig.from_settings(self.settings))

    async def checkout(
        self,
        items: list[CartItem],
        email: str,
        shipping_address: dict[str, Any] | None = None,
        user_id: UUID | None = None,
    ) -> CheckoutResult:
        """Validate a cart, create the pending order and a payment session.

        Stock is not touched here; it is decremented when payment settles.

        Args:
            items: Requested items and quantities.
            email: Contact email for the order.
            shipping_address: Opaque shipping details.
            user_id: Optional authenticated buyer.

        Returns:
            CheckoutResult: The pending order and the provider redirect.

        Raises:
            CartError: If the cart is empty, unknown, or out of stock.
            PaymentProviderError: If the provider session could not be created.
        """
        cart = await self.validator.validate(items)
        order = await self.ledger.create(
            cart,
            contact_email=email,
            shipping_address=shipping_address,
            currency=self.settings.store_currency,
            user_id=user_id,
        )
        session = await self.broker.create_session(order)
        return CheckoutResult(
            order=order,
            redirect_url=session.redirect_url,
            provider_session_id=session.provider_session_id,
        )

    async def handle_payment_notification(
        self,
        notification: VerifiedNotification,
        defer: DeferCallback | None = None,
    ) -> ReconcileOutcome:
        """Reconcile a verified webhook notification.

        Args:
            notification: Output of the webhook verifier.
            defer: Optional scheduler for the confirmation email, so it is
                sent after the webhook has been acknowledged.
        """
        reconciler = SettlementReconciler(self.ledger, self.store, self.gateway, EmailService(), defer=defer)
        outcome = await reconciler.reconcile(notification)
        logger.info("Payment notification %s reconciled: %s", notification.payment_id, outcome.value)
        return outcome

    async def get_order(self, order_id: UUID) -> Order | None:
        return self.store.get_order_by_id(order_id)

    async def get_orders_for_user(self, user_id: UUID) -> list[Order]:
        return await self.ledger.list_orders_for_user(user_id)
