"""Database model type definitions."""

from src.models.order import (
    ALLOWED_TRANSITIONS,
    CartItem,
    CatalogItem,
    Order,
    OrderLineItem,
    OrderStatus,
    PaymentNotification,
    ValidatedCart,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "CartItem",
    "CatalogItem",
    "Order",
    "OrderLineItem",
    "OrderStatus",
    "PaymentNotification",
    "ValidatedCart",
]
