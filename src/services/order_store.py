"""Document store access for orders and catalog stock.

OrderStore exposes only the operations the settlement flow needs.
"""

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Protocol
from uuid import UUID

from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client

from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.models.order import CatalogItem, Order, OrderStatus

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
PRODUCTS_TABLE = "products"

# Postgres function that decrements a product once per order, see supabase/migrations
DECREMENT_STOCK_FUNCTION = "decrement_stock_for_order"

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

# Columns a stored order may ever have rewritten
MUTABLE_ORDER_FIELDS = ("status", "payment_provider_id", "updated_at")


class DuplicateOrderError(Exception):
    """Raised when inserting an order whose id or external reference exists."""


@dataclass(frozen=True)
class StockDecrement:
    """Result of a clamped stock decrement."""

    item_id: str
    previous: int
    remaining: int
    requested: int
    already_applied: bool = False

    @property
    def oversold(self) -> bool:
        """True when the decrement would have gone below zero."""
        return not self.already_applied and self.requested > self.previous


def _clamped(previous: int, amount: int) -> int:
    return max(previous - amount, 0)


class OrderStore(Protocol):
    """Narrow read/write interface over the catalog and orders."""

    def get_item(self, item_id: str) -> CatalogItem | None: ...

    def decrement_stock(self, order_id: UUID, item_id: str, amount: int) -> StockDecrement | None: ...

    def get_order(self, external_reference: str) -> Order | None: ...

    def get_order_by_id(self, order_id: UUID) -> Order | None: ...

    def save_order(self, order: Order, expected_status: OrderStatus | None = None) -> bool: ...

    def list_orders_for_user(self, user_id: UUID) -> list[Order]: ...


class SupabaseOrderStore:
    """OrderStore backed by the Supabase products and orders tables."""

    def __init__(self, client: Client | None = None) -> None:
        """Initialize store.

        Args:
            client: Optional Supabase client for testing.
        """
        self.client = client or get_supabase_client()

    def get_item(self, item_id: str) -> CatalogItem | None:
        response = (
            self.client.table(PRODUCTS_TABLE)
            .select("id, name, price, stock")
            .eq("id", item_id)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            return None
        return CatalogItem.model_validate(response.data)

    def decrement_stock(self, order_id: UUID, item_id: str, amount: int) -> StockDecrement | None:
        """Decrement stock for one order line, at most once per order.

        The database function records (order_id, item_id) and updates the
        product row in one transaction, so a repeated call for the same
        order returns the recorded state instead of decrementing again.

        Returns:
            StockDecrement | None: The change (or the earlier one), or None if the item is gone.
        """
        response = self.client.rpc(
            DECREMENT_STOCK_FUNCTION,
            {"p_order_id": str(order_id), "p_product_id": item_id, "p_amount": amount},
        ).execute()

        rows = response.data if response else None
        if isinstance(rows, dict):
            rows = [rows]
        if not rows:
            return None

        row = rows[0]
        return StockDecrement(
            item_id=item_id,
            previous=int(row["previous"]),
            remaining=int(row["remaining"]),
            requested=amount,
            already_applied=bool(row.get("already_applied")),
        )

    def get_order(self, external_reference: str) -> Order | None:
        return self._get_order_where("external_reference", external_reference)

    def get_order_by_id(self, order_id: UUID) -> Order | None:
        return self._get_order_where("id", str(order_id))

    def save_order(self, order: Order, expected_status: OrderStatus | None = None) -> bool:
        """Insert a new order, or conditionally update an existing one.

        Args:
            order: Order to persist.
            expected_status: When set, the write only happens if the stored
                status still equals this value.

        Returns:
            bool: False if the conditional update matched no row.

        Raises:
            DuplicateOrderError: If an insert collides with an existing order.
        """
        row = order.to_row()

        if expected_status is None:
            if self.get_order(order.external_reference) is not None:
                raise DuplicateOrderError(order.external_reference)
            try:
                self.client.table(ORDERS_TABLE).insert(row).execute()
            except PostgrestAPIError as e:
                # Lost an insert race on the id or external_reference index
                if e.code == UNIQUE_VIOLATION:
                    raise DuplicateOrderError(order.external_reference) from e
                raise
            return True

        changes = {field: row[field] for field in MUTABLE_ORDER_FIELDS}
        response = (
            self.client.table(ORDERS_TABLE)
            .update(changes)
            .eq("id", str(order.id))
            .eq("status", expected_status.value)
            .execute()
        )
        return bool(response.data)

    def list_orders_for_user(self, user_id: UUID) -> list[Order]:
        response = (
            self.client.table(ORDERS_TABLE)
            .select("*")
            .eq("user_id", str(user_id))
            .order("created_at", desc=True)
            .execute()
        )
        return [Order.model_validate(row) for row in response.data or []]

    def _get_order_where(self, column: str, value: str) -> Order | None:
        response = (
            self.client.table(ORDERS_TABLE)
            .select("*")
            .eq(column, value)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            return None
        return Order.model_validate(response.data)


class InMemoryOrderStore:
    """Thread-safe in-memory OrderStore for local development and tests."""

    def __init__(self, items: list[CatalogItem] | None = None) -> None:
        self._items: dict[str, CatalogItem] = {item.id: item for item in items or []}
        self._orders: dict[UUID, Order] = {}
        self._references: dict[str, UUID] = {}
        self._decremented: set[tuple[UUID, str]] = set()
        self._lock = Lock()

    def put_item(self, item: CatalogItem) -> None:
        """Insert or replace a catalog item (external inventory management)."""
        with self._lock:
            self._items[item.id] = item

    def get_item(self, item_id: str) -> CatalogItem | None:
        with self._lock:
            return self._items.get(item_id)

    def decrement_stock(self, order_id: UUID, item_id: str, amount: int) -> StockDecrement | None:
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            if (order_id, item_id) in self._decremented:
                return StockDecrement(
                    item_id=item_id,
                    previous=item.stock,
                    remaining=item.stock,
                    requested=amount,
                    already_applied=True,
                )
            remaining = _clamped(item.stock, amount)
            self._items[item_id] = item.model_copy(update={"stock": remaining})
            self._decremented.add((order_id, item_id))
            return StockDecrement(item_id=item_id, previous=item.stock, remaining=remaining, requested=amount)

    def get_order(self, external_reference: str) -> Order | None:
        with self._lock:
            order_id = self._references.get(external_reference)
            return self._orders.get(order_id) if order_id else None

    def get_order_by_id(self, order_id: UUID) -> Order | None:
        with self._lock:
            return self._orders.get(order_id)

    def save_order(self, order: Order, expected_status: OrderStatus | None = None) -> bool:
        with self._lock:
            if expected_status is None:
                if order.id in self._orders or order.external_reference in self._references:
                    raise DuplicateOrderError(order.external_reference)
                self._orders[order.id] = order
                self._references[order.external_reference] = order.id
                return True

            stored = self._orders.get(order.id)
            if stored is None or stored.status != expected_status:
                return False
            changes: dict[str, Any] = {field: getattr(order, field) for field in MUTABLE_ORDER_FIELDS}
            self._orders[order.id] = stored.model_copy(update=changes)
            return True

    def list_orders_for_user(self, user_id: UUID) -> list[Order]:
        with self._lock:
            orders = [order for order in self._orders.values() if order.user_id == user_id]
        return sorted(orders, key=lambda order: order.created_at, reverse=True)


# Global singleton instance
_order_store: OrderStore | None = None


def get_order_store() -> OrderStore:
    """Get or create the process-wide store selected by ORDER_STORE_BACKEND."""
    global _order_store
    if _order_store is None:
        settings = get_settings()
        if settings.order_store_backend == "memory":
            logger.warning("Using in-memory order store; orders will not survive a restart")
            _order_store = InMemoryOrderStore()
        else:
            _order_store = SupabaseOrderStore()
    return _order_store


def reset_order_store(store: OrderStore | None = None) -> None:
    """Replace the global store (None lets the next call rebuild it from settings)."""
    global _order_store
    _order_store = store
