"""Checkout and order Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from src.models.order import CartItem, Order


class CheckoutItem(BaseModel):
    """A cart entry as sent by the storefront. Prices are not accepted."""

    id: str = Field(min_length=1, description="Product id")
    quantity: int = Field(description="Requested quantity")

    def to_cart_item(self) -> CartItem:
        return CartItem(item_id=self.id, quantity=self.quantity)


class CheckoutRequest(BaseModel):
    """Schema for POST /orders/checkout."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[CheckoutItem] = Field(default_factory=list, description="Cart items")
    email: EmailStr = Field(description="Contact email for the order")
    shipping_address: dict[str, Any] | None = Field(
        default=None,
        alias="shippingAddress",
        description="Shipping details, stored as provided",
    )


class CheckoutResponse(BaseModel):
    """Schema for checkout response. Field names are what the storefront expects."""

    id: str = Field(description="Payment provider session id")
    init_point: str = Field(description="Provider URL to redirect the customer to")
    order_id: UUID = Field(serialization_alias="orderId", description="Created order id")


class OrderLineItemSchema(BaseModel):
    """Schema for a single line item in an order."""

    model_config = ConfigDict(from_attributes=True)

    product_ref: str = Field(description="Product id")
    title: str = Field(description="Product name at checkout time")
    quantity: int = Field(ge=1, description="Quantity ordered")
    unit_price: Decimal = Field(description="Unit price captured at checkout")


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Order unique identifier")
    external_reference: str = Field(description="Payment correlation reference")
    status: str = Field(description="Order status")
    line_items: list[OrderLineItemSchema] = Field(description="Order line items")
    total: Decimal = Field(description="Order total")
    currency: str = Field(description="Currency code")
    contact_email: str = Field(description="Contact email")
    shipping_address: dict[str, Any] | None = Field(default=None, description="Shipping details")
    payment_provider_id: str | None = Field(default=None, description="Provider payment id")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last status change timestamp")

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls.model_validate(order.model_dump(mode="json"))


class OrderListResponse(BaseModel):
    """Schema for order list API responses."""

    items: list[OrderResponse] = Field(description="List of orders")


class WebhookAck(BaseModel):
    """Acknowledgement returned to the payment provider."""

    received: bool = True
