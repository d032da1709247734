"""Order ledger: creation and the single write path for order status."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

from src.models.order import ALLOWED_TRANSITIONS, Order, OrderStatus, ValidatedCart, utcnow
from src.services.order_store import OrderStore

logger = logging.getLogger(__name__)

# Bound on re-reads after losing a status compare-and-swap
MAX_TRANSITION_ATTEMPTS = 5

TransitionEffect = Callable[[Order], Awaitable[None]]


class TransitionError(Exception):
    """Base class for rejected status transitions."""


class OrderNotFoundError(TransitionError):
    def __init__(self, key: UUID | str) -> None:
        self.key = key
        super().__init__(f"Order {key} not found")


class IllegalTransitionError(TransitionError):
    def __init__(self, current: OrderStatus, target: OrderStatus) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Illegal order transition {current.value} -> {target.value}")


class TransitionConflictError(TransitionError):
    def __init__(self, order_id: UUID) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} kept changing during transition")


@dataclass(frozen=True)
class TransitionOutcome:
    """Order after a transition call, and whether this call changed it."""

    order: Order
    applied: bool


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Check whether current -> target is an edge of the status DAG."""
    return target in ALLOWED_TRANSITIONS[current]


def generate_external_reference() -> str:
    """Create a correlation token for the payment provider.

    Keeps the human-scannable ORDER- prefix with a uuid4 body.
    """
    return f"ORDER-{uuid4().hex.upper()}"


class OrderLedger:
    """Owns order records and their status transitions."""

    def __init__(self, store: OrderStore) -> None:
        self.store = store

    async def create(
        self,
        cart: ValidatedCart,
        contact_email: str,
        shipping_address: dict[str, Any] | None,
        currency: str,
        user_id: UUID | None = None,
    ) -> Order:
        """Persist a pending order holding the cart's price snapshot.

        Args:
            cart: Validated cart with catalog prices.
            contact_email: Address for the confirmation notification.
            shipping_address: Opaque shipping details.
            currency: ISO currency code for the order.
            user_id: Optional identity of the buyer (None for guest checkout).

        Returns:
            Order: The stored pending order.
        """
        order = Order(
            id=uuid4(),
            external_reference=generate_external_reference(),
            status=OrderStatus.PENDING,
            line_items=cart.line_items,
            total=cart.total,
            currency=currency,
            contact_email=contact_email,
            shipping_address=shipping_address,
            user_id=user_id,
        )
        self.store.save_order(order)
        logger.info("Order %s created as pending (ref %s, total %s)", order.id, order.external_reference, order.total)
        return order

    async def get_order(self, order_id: UUID) -> Order:
        order = self.store.get_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def find_by_external_reference(self, external_reference: str) -> Order:
        order = self.store.get_order(external_reference)
        if order is None:
            raise OrderNotFoundError(external_reference)
        return order

    async def list_orders_for_user(self, user_id: UUID) -> list[Order]:
        return self.store.list_orders_for_user(user_id)

    async def transition(
        self,
        order_id: UUID,
        target: OrderStatus,
        effect: TransitionEffect | None = None,
        payment_provider_id: str | None = None,
    ) -> TransitionOutcome:
        """Move an order to `target` together with its side effect.

        `effect` runs before the status is swapped and must be idempotent
        per order. If it fails, the order keeps its current status and the
        error propagates, so a later call resumes where it stopped. The
        status change itself is a compare-and-swap on the stored status;
        only the caller that wins it reports `applied=True`. An order
        already in `target` is returned untouched and `effect` is not run.

        Args:
            order_id: Order to transition.
            target: Desired status.
            effect: Async side effect tied to this transition (e.g. stock decrement).
            payment_provider_id: Provider payment id to attach to the order.

        Returns:
            TransitionOutcome: Resulting order and whether this call applied it.

        Raises:
            OrderNotFoundError: If the order does not exist.
            IllegalTransitionError: If current -> target is not allowed.
            TransitionConflictError: If the swap kept losing to other writers.
        """
        effect_done = effect is None
        for _ in range(MAX_TRANSITION_ATTEMPTS):
            current = self.store.get_order_by_id(order_id)
            if current is None:
                raise OrderNotFoundError(order_id)

            if current.status == target:
                return TransitionOutcome(order=current, applied=False)

            if not can_transition(current.status, target):
                if effect_done and effect is not None:
                    logger.error(
                        "Order %s moved to %s after its %s effect ran",
                        order_id,
                        current.status.value,
                        target.value,
                    )
                raise IllegalTransitionError(current.status, target)

            if not effect_done:
                await effect(current)
                effect_done = True

            updated = current.model_copy(
                update={
                    "status": target,
                    "payment_provider_id": payment_provider_id or current.payment_provider_id,
                    "updated_at": utcnow(),
                }
            )
            if not self.store.save_order(updated, expected_status=current.status):
                logger.debug("Lost status swap on order %s, re-reading", order_id)
                continue

            logger.info("Order %s: %s -> %s", order_id, current.status.value, target.value)
            return TransitionOutcome(order=updated, applied=True)

        raise TransitionConflictError(order_id)
