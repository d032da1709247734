"""Order and catalog domain models used by the settlement flow."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    """Order status values matching the orders.status column."""

    PENDING = "pending"
    PAID = "paid"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Allowed status edges. Anything not listed here is illegal.
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.REJECTED, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogItem(BaseModel):
    """Product row as seen by the settlement flow (products table)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    price: Decimal
    stock: int = Field(ge=0)


class CartItem(BaseModel):
    """A requested (item, quantity) pair. Carries no price on purpose."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    quantity: int


class OrderLineItem(BaseModel):
    """Single line of an order with the price captured at checkout.

    Stored as part of the line_items JSONB array.
    """

    model_config = ConfigDict(frozen=True)

    product_ref: str
    title: str
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class ValidatedCart(BaseModel):
    """Cart whose items exist, have stock, and are priced from the catalog."""

    model_config = ConfigDict(frozen=True)

    line_items: tuple[OrderLineItem, ...]
    total: Decimal


class Order(BaseModel):
    """Orders table row representation.

    Line items and total are a snapshot taken at creation and are never
    rewritten. Only status, payment_provider_id and updated_at change, and
    only through OrderLedger.transition.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    external_reference: str
    status: OrderStatus = OrderStatus.PENDING
    line_items: tuple[OrderLineItem, ...]
    total: Decimal
    currency: str
    contact_email: str
    shipping_address: dict[str, Any] | None = None
    payment_provider_id: str | None = None
    user_id: UUID | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_row(self) -> dict[str, Any]:
        """Serialize for the document store (JSON-safe values)."""
        return self.model_dump(mode="json")


class PaymentNotification(BaseModel):
    """Provider-neutral view of a payment, as returned by a gateway lookup.

    `status` uses the provider vocabulary normalized by the adapter
    (approved, rejected, cancelled, refunded, or anything else).
    """

    model_config = ConfigDict(frozen=True)

    payment_id: str
    status: str
    external_reference: str | None = None
