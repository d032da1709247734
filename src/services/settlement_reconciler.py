"""Settlement of orders from verified payment notifications."""

import asyncio
import logging
from enum import Enum
from collections.abc import Callable
from typing import Any, Protocol

from src.models.order import Order, OrderStatus
from src.services.order_ledger import IllegalTransitionError, OrderLedger, OrderNotFoundError
from src.services.order_store import OrderStore
from src.services.payment_gateway import PaymentGateway, PaymentProviderError
from src.services.webhook_verifier import VerifiedNotification

logger = logging.getLogger(__name__)

# Provider payment status -> order status. Unlisted statuses leave the order alone.
PAYMENT_STATUS_MAP: dict[str, OrderStatus] = {
    "approved": OrderStatus.PAID,
    "rejected": OrderStatus.REJECTED,
    "cancelled": OrderStatus.CANCELLED,
    "refunded": OrderStatus.REFUNDED,
}


class Notifier(Protocol):
    async def send_order_confirmation(self, order: Order) -> dict[str, Any]: ...


# Schedules a coroutine function to run after the webhook response, e.g. BackgroundTasks.add_task
DeferCallback = Callable[..., None]


class ReconcileOutcome(str, Enum):
    """What a reconcile call did. Every outcome is acknowledged to the provider."""

    IGNORED = "ignored"
    PROVIDER_ERROR = "provider_error"
    ORDER_NOT_FOUND = "order_not_found"
    UNMAPPED_STATUS = "unmapped_status"
    ALREADY_APPLIED = "already_applied"
    APPLIED = "applied"
    ILLEGAL_TRANSITION = "illegal_transition"
    EFFECT_FAILED = "effect_failed"


class SettlementReconciler:
    """Applies verified payment outcomes to orders and catalog stock."""

    def __init__(
        self,
        ledger: OrderLedger,
        store: OrderStore,
        gateway: PaymentGateway,
        notifier: Notifier,
        defer: DeferCallback | None = None,
    ) -> None:
        self.ledger = ledger
        self.store = store
        self.gateway = gateway
        self.notifier = notifier
        self.defer = defer

    async def reconcile(self, notification: VerifiedNotification) -> ReconcileOutcome:
        """Reconcile one verified notification.

        Logical problems (unknown order, illegal transition) are logged for
        operators and reported through the outcome; they are never raised,
        because a provider retry cannot fix them.

        Args:
            notification: Output of the webhook verifier.

        Returns:
            ReconcileOutcome: What happened.
        """
        if not notification.is_payment or not notification.payment_id:
            logger.debug("Ignoring %s notification", notification.type)
            return ReconcileOutcome.IGNORED

        try:
            payment = await asyncio.to_thread(self.gateway.get_payment, notification.payment_id)
        except PaymentProviderError as e:
            logger.error("Could not fetch payment %s from provider: %s", notification.payment_id, e.message)
            return ReconcileOutcome.PROVIDER_ERROR

        order = self.store.get_order(payment.external_reference) if payment.external_reference else None
        if order is None:
            logger.warning(
                "Order not found for payment %s ref %s",
                payment.payment_id,
                payment.external_reference,
            )
            return ReconcileOutcome.ORDER_NOT_FOUND

        target = PAYMENT_STATUS_MAP.get(payment.status)
        if target is None:
            logger.info(
                "Payment %s for order %s has status %r; leaving order %s",
                payment.payment_id,
                order.id,
                payment.status,
                order.status.value,
            )
            return ReconcileOutcome.UNMAPPED_STATUS

        effect = self._decrement_stock if target == OrderStatus.PAID else None

        try:
            outcome = await self.ledger.transition(
                order.id,
                target,
                effect=effect,
                payment_provider_id=payment.payment_id,
            )
        except IllegalTransitionError as e:
            logger.warning(
                "Reconciliation anomaly for order %s (payment %s): %s",
                order.id,
                payment.payment_id,
                str(e),
            )
            return ReconcileOutcome.ILLEGAL_TRANSITION
        except OrderNotFoundError:
            logger.warning("Order %s disappeared during reconciliation", order.id)
            return ReconcileOutcome.ORDER_NOT_FOUND
        except Exception as e:
            logger.error(
                "Settlement of order %s to %s failed: %s",
                order.id,
                target.value,
                str(e),
                exc_info=True,
            )
            return ReconcileOutcome.EFFECT_FAILED

        if not outcome.applied:
            logger.info("Order %s already %s; duplicate notification ignored", order.id, target.value)
            return ReconcileOutcome.ALREADY_APPLIED

        if target == OrderStatus.PAID:
            if self.defer is not None:
                self.defer(self._send_confirmation, outcome.order)
            else:
                await self._send_confirmation(outcome.order)

        return ReconcileOutcome.APPLIED

    async def _decrement_stock(self, order: Order) -> None:
        """Transition effect for pending -> paid. Lines already decremented for this order are skipped."""
        for line in order.line_items:
            change = self.store.decrement_stock(order.id, line.product_ref, line.quantity)
            if change is None:
                logger.warning(
                    "Product %s from order %s no longer exists; stock not decremented",
                    line.product_ref,
                    order.id,
                )
                continue
            if change.already_applied:
                logger.info("Stock for %s already decremented for order %s", line.product_ref, order.id)
                continue
            if change.oversold:
                logger.error(
                    "Oversell detected on product %s for order %s: requested %d, available %d; stock clamped to 0",
                    line.product_ref,
                    order.id,
                    change.requested,
                    change.previous,
                )
            else:
                logger.info("Stock for %s: %d -> %d", line.product_ref, change.previous, change.remaining)

    async def _send_confirmation(self, order: Order) -> None:
        """Fire-and-forget: the order is already paid whatever happens here."""
        try:
            result = await self.notifier.send_order_confirmation(order)
        except Exception as e:
            logger.error("Confirmation notification for order %s raised: %s", order.id, str(e))
            return
        if not result.get("success"):
            logger.warning("Confirmation notification for order %s not sent: %s", order.id, result.get("error"))
