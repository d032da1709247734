"""Cart validation against live catalog prices and stock."""

import logging
from decimal import Decimal

from src.models.order import CartItem, OrderLineItem, ValidatedCart
from src.services.order_store import OrderStore

logger = logging.getLogger(__name__)


class CartError(Exception):
    """Base class for carts that cannot be checked out."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class EmptyCartError(CartError):
    def __init__(self) -> None:
        super().__init__("No items in cart")


class InvalidQuantityError(CartError):
    def __init__(self, item_id: str, quantity: int) -> None:
        self.item_id = item_id
        self.quantity = quantity
        super().__init__(f"Invalid quantity {quantity} for item {item_id}")


class ItemNotFoundError(CartError):
    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Product {item_id} not found")


class InsufficientStockError(CartError):
    def __init__(self, item_id: str, available: int, requested: int) -> None:
        self.item_id = item_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {item_id}: requested {requested}, available {available}"
        )


def merge_cart_items(items: list[CartItem]) -> list[CartItem]:
    """Collapse repeated item ids into one entry, keeping first-seen order."""
    quantities: dict[str, int] = {}
    for item in items:
        quantities[item.item_id] = quantities.get(item.item_id, 0) + item.quantity
    return [CartItem(item_id=item_id, quantity=quantity) for item_id, quantity in quantities.items()]


class CartValidator:
    """Checks a requested cart against the catalog. Read-only."""

    def __init__(self, store: OrderStore) -> None:
        self.store = store

    async def validate(self, items: list[CartItem]) -> ValidatedCart:
        """Validate requested items and price them from the catalog.

        Client-supplied prices are never accepted; every unit price comes
        from the current catalog record.

        Args:
            items: Requested (item id, quantity) pairs.

        Returns:
            ValidatedCart: Line items with price snapshots and the total.

        Raises:
            CartError: The first problem found, in request order.
        """
        if not items:
            raise EmptyCartError()

        for item in items:
            if item.quantity < 1:
                raise InvalidQuantityError(item.item_id, item.quantity)

        line_items: list[OrderLineItem] = []
        total = Decimal("0")

        for requested in merge_cart_items(items):
            product = self.store.get_item(requested.item_id)
            if product is None:
                raise ItemNotFoundError(requested.item_id)

            if requested.quantity > product.stock:
                raise InsufficientStockError(requested.item_id, product.stock, requested.quantity)

            line = OrderLineItem(
                product_ref=product.id,
                title=product.name or product.id,
                quantity=requested.quantity,
                unit_price=product.price,
            )
            line_items.append(line)
            total += line.subtotal

        logger.debug("Validated cart with %d line items, total %s", len(line_items), total)
        return ValidatedCart(line_items=tuple(line_items), total=total)
