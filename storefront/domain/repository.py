"""Persistence capability used by the application services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, ContextManager, Optional, Protocol, Sequence

if TYPE_CHECKING:
    from .models import (
        AbandonedCart,
        Contact,
        InventoryLog,
        Order,
        Product,
        RecentlyViewedItem,
        ShippingRate,
        User,
    )


@dataclass
class StockChange:
    """Outcome of an atomic stock write."""

    product: "Product"
    previous: int
    new: int

    @property
    def crossed_threshold(self) -> bool:
        threshold = self.product.low_stock_threshold
        return self.previous > threshold and self.new <= threshold


@dataclass
class OrderFilters:
    status: Optional[str] = None
    payment_status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class Repository(Protocol):
    """Storage operations for every storefront table.

    Writes made inside ``transaction()`` commit together or not at all.
    Two implementations exist: ``SqlRepository`` over a SQLAlchemy session
    and ``InMemoryRepository`` over a process-local store.
    """

    def transaction(self) -> ContextManager["Repository"]:
        ...

    # Catalog
    def list_products(self, category: Optional[str] = None) -> list["Product"]:
        ...

    def get_product(self, product_id: int) -> Optional["Product"]:
        ...

    def get_products(self, product_ids: Sequence[int]) -> dict[int, "Product"]:
        ...

    def add_product(self, product: "Product") -> "Product":
        ...

    def update_product(self, product_id: int, fields: dict) -> Optional["Product"]:
        ...

    def delete_product(self, product_id: int) -> bool:
        ...

    def product_has_orders(self, product_id: int) -> bool:
        ...

    # Recently viewed
    def add_product_view(self, view: "RecentlyViewedItem") -> "RecentlyViewedItem":
        ...

    def recently_viewed_product_ids(self, session_id: str, limit: int) -> list[int]:
        """Distinct product ids viewed in a session, most recent view first."""
        ...

    def delete_views_before(self, cutoff: datetime) -> int:
        ...

    # Stock ledger
    def decrement_stock(self, product_id: int, quantity: int) -> Optional[StockChange]:
        """Clamp-at-zero decrement applied as one conditional write."""
        ...

    def set_stock(self, product_id: int, quantity: int) -> Optional[StockChange]:
        ...

    def low_stock_products(self) -> list["Product"]:
        ...

    def add_inventory_log(self, log: "InventoryLog") -> "InventoryLog":
        ...

    def list_inventory_logs(self, product_id: Optional[int] = None) -> list["InventoryLog"]:
        ...

    # Shipping
    def list_active_rates(self) -> list["ShippingRate"]:
        ...

    def get_rate(self, rate_id: int) -> Optional["ShippingRate"]:
        ...

    def add_rate(self, rate: "ShippingRate") -> "ShippingRate":
        ...

    # Orders
    def add_order(self, order: "Order") -> "Order":
        """Persist an order with its items. Raises DuplicateOrderNumberError."""
        ...

    def get_order(self, order_id: int) -> Optional["Order"]:
        ...

    def get_order_by_number(self, order_number: str) -> Optional["Order"]:
        ...

    def list_orders(self, filters: Optional[OrderFilters] = None) -> list["Order"]:
        ...

    def update_order(self, order_id: int, fields: dict) -> Optional["Order"]:
        ...

    # Contacts
    def add_contact(self, contact: "Contact") -> "Contact":
        ...

    def list_contacts(self) -> list["Contact"]:
        ...

    def update_contact(self, contact_id: int, fields: dict) -> Optional["Contact"]:
        ...

    # Abandoned carts
    def get_open_cart(self, email: str) -> Optional["AbandonedCart"]:
        ...

    def add_cart(self, cart: "AbandonedCart") -> "AbandonedCart":
        ...

    def update_cart(self, cart_id: int, fields: dict) -> Optional["AbandonedCart"]:
        ...

    def carts_for_recovery(self, cutoff: datetime) -> list["AbandonedCart"]:
        ...

    def mark_recovery_sent(self, cart_id: int, sent_at: datetime) -> bool:
        """Flag a cart as emailed unless it was converted meanwhile."""
        ...

    def mark_converted(self, email: str, order_number: str) -> int:
        ...

    # Users
    def get_user(self, user_id: int) -> Optional["User"]:
        ...

    def get_user_by_email(self, email: str) -> Optional["User"]:
        ...

    def add_user(self, user: "User") -> "User":
        ...

    def update_user(self, user_id: int, fields: dict) -> Optional["User"]:
        ...
