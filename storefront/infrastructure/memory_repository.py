"""Process-local repository used for development and tests.

All tables live in one ``MemoryStore`` guarded by a re-entrant lock. A
transaction holds the lock for its whole duration and keeps an undo log, so a
failing transaction leaves the store exactly as it found it.
"""

import itertools
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional, Sequence

from storefront.domain.models import (
    AbandonedCart,
    Contact,
    InventoryLog,
    Order,
    Product,
    RecentlyViewedItem,
    ShippingRate,
    User,
)
from storefront.domain.repository import OrderFilters, StockChange
from storefront.errors import DuplicateOrderNumberError

TABLES = (
    "users",
    "products",
    "orders",
    "order_items",
    "contacts",
    "abandoned_carts",
    "inventory_logs",
    "shipping_rates",
    "recently_viewed_items",
)


def apply_column_defaults(obj):
    """Fill unset attributes from the mapped column defaults, as a flush would."""
    for column in obj.__table__.columns:
        if getattr(obj, column.key, None) is not None or column.default is None:
            continue
        default = column.default
        if default.is_callable:
            setattr(obj, column.key, default.arg(None))
        elif default.is_scalar:
            setattr(obj, column.key, default.arg)


class MemoryStore:
    def __init__(self):
        self.lock = threading.RLock()
        self.tables: dict[str, dict[int, object]] = {name: {} for name in TABLES}
        self._ids = {name: itertools.count(1) for name in TABLES}
        self._undo: Optional[list[Callable[[], None]]] = None

    def next_id(self, table: str) -> int:
        return next(self._ids[table])


class InMemoryRepository:
    def __init__(self, store: MemoryStore):
        self.store = store

    @contextmanager
    def transaction(self) -> Iterator["InMemoryRepository"]:
        with self.store.lock:
            if self.store._undo is not None:
                # nested: join the outer transaction
                yield self
                return
            self.store._undo = []
            try:
                yield self
            except Exception:
                for undo in reversed(self.store._undo):
                    undo()
                raise
            finally:
                self.store._undo = None

    def _record(self, undo: Callable[[], None]):
        if self.store._undo is not None:
            self.store._undo.append(undo)

    def _insert(self, table: str, obj):
        with self.store.lock:
            apply_column_defaults(obj)
            obj.id = self.store.next_id(table)
            rows = self.store.tables[table]
            rows[obj.id] = obj
            self._record(lambda: rows.pop(obj.id, None))
            return obj

    def _update(self, obj, fields: dict):
        with self.store.lock:
            old = {key: getattr(obj, key) for key in fields}
            if "updated_at" in obj.__table__.columns and "updated_at" not in fields:
                old["updated_at"] = obj.updated_at
                fields = {**fields, "updated_at": datetime.utcnow()}

            def undo():
                for key, value in old.items():
                    setattr(obj, key, value)

            for key, value in fields.items():
                setattr(obj, key, value)
            self._record(undo)
            return obj

    def _delete(self, table: str, key: int):
        with self.store.lock:
            rows = self.store.tables[table]
            obj = rows.pop(key, None)
            if obj is not None:
                self._record(lambda: rows.__setitem__(key, obj))
            return obj

    def _rows(self, table: str) -> list:
        with self.store.lock:
            return list(self.store.tables[table].values())

    # Catalog
    def list_products(self, category: Optional[str] = None) -> list[Product]:
        rows = self._rows("products")
        if category:
            rows = [p for p in rows if p.category == category]
        return sorted(rows, key=lambda p: p.id)

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.store.tables["products"].get(product_id)

    def get_products(self, product_ids: Sequence[int]) -> dict[int, Product]:
        products = self.store.tables["products"]
        return {pid: products[pid] for pid in set(product_ids) if pid in products}

    def add_product(self, product: Product) -> Product:
        return self._insert("products", product)

    def update_product(self, product_id: int, fields: dict) -> Optional[Product]:
        product = self.get_product(product_id)
        if not product:
            return None
        return self._update(product, fields)

    def delete_product(self, product_id: int) -> bool:
        with self.store.lock:
            if self._delete("products", product_id) is None:
                return False
            for view in self._rows("recently_viewed_items"):
                if view.product_id == product_id:
                    self._delete("recently_viewed_items", view.id)
            return True

    def product_has_orders(self, product_id: int) -> bool:
        return any(i.product_id == product_id for i in self._rows("order_items"))

    # Recently viewed
    def add_product_view(self, view: RecentlyViewedItem) -> RecentlyViewedItem:
        return self._insert("recently_viewed_items", view)

    def recently_viewed_product_ids(self, session_id: str, limit: int) -> list[int]:
        views = sorted(
            (v for v in self._rows("recently_viewed_items") if v.session_id == session_id),
            key=lambda v: (v.viewed_at, v.id),
            reverse=True,
        )
        product_ids: list[int] = []
        for view in views:
            if view.product_id not in product_ids:
                product_ids.append(view.product_id)
                if len(product_ids) == limit:
                    break
        return product_ids

    def delete_views_before(self, cutoff: datetime) -> int:
        with self.store.lock:
            stale = [v for v in self._rows("recently_viewed_items") if v.viewed_at < cutoff]
            for view in stale:
                self._delete("recently_viewed_items", view.id)
            return len(stale)

    # Stock ledger
    def decrement_stock(self, product_id: int, quantity: int) -> Optional[StockChange]:
        with self.store.lock:
            product = self.get_product(product_id)
            if not product:
                return None
            previous = product.stock_quantity
            new = max(0, previous - quantity)
            self._update(product, {"stock_quantity": new, "in_stock": new > 0})
            return StockChange(product=product, previous=previous, new=new)

    def set_stock(self, product_id: int, quantity: int) -> Optional[StockChange]:
        with self.store.lock:
            product = self.get_product(product_id)
            if not product:
                return None
            previous = product.stock_quantity
            self._update(product, {"stock_quantity": quantity, "in_stock": quantity > 0})
            return StockChange(product=product, previous=previous, new=quantity)

    def low_stock_products(self) -> list[Product]:
        rows = [p for p in self._rows("products") if p.stock_quantity <= p.low_stock_threshold]
        return sorted(rows, key=lambda p: (p.stock_quantity, p.id))

    def add_inventory_log(self, log: InventoryLog) -> InventoryLog:
        return self._insert("inventory_logs", log)

    def list_inventory_logs(self, product_id: Optional[int] = None) -> list[InventoryLog]:
        rows = self._rows("inventory_logs")
        if product_id is not None:
            rows = [r for r in rows if r.product_id == product_id]
        return sorted(rows, key=lambda r: (r.created_at, r.id), reverse=True)

    # Shipping
    def list_active_rates(self) -> list[ShippingRate]:
        rows = [r for r in self._rows("shipping_rates") if r.active]
        return sorted(rows, key=lambda r: (r.display_order, r.id))

    def get_rate(self, rate_id: int) -> Optional[ShippingRate]:
        return self.store.tables["shipping_rates"].get(rate_id)

    def add_rate(self, rate: ShippingRate) -> ShippingRate:
        return self._insert("shipping_rates", rate)

    # Orders
    def add_order(self, order: Order) -> Order:
        with self.store.lock:
            if self.get_order_by_number(order.order_number) is not None:
                raise DuplicateOrderNumberError(order.order_number)
            self._insert("orders", order)
            for item in order.items:
                item.order_id = order.id
                self._insert("order_items", item)
            return order

    def get_order(self, order_id: int) -> Optional[Order]:
        return self.store.tables["orders"].get(order_id)

    def get_order_by_number(self, order_number: str) -> Optional[Order]:
        for order in self._rows("orders"):
            if order.order_number == order_number:
                return order
        return None

    def list_orders(self, filters: Optional[OrderFilters] = None) -> list[Order]:
        rows = self._rows("orders")
        if filters:
            if filters.status:
                rows = [o for o in rows if o.status == filters.status]
            if filters.payment_status:
                rows = [o for o in rows if o.payment_status == filters.payment_status]
            if filters.start_date:
                rows = [o for o in rows if o.created_at >= filters.start_date]
            if filters.end_date:
                rows = [o for o in rows if o.created_at <= filters.end_date]
        return sorted(rows, key=lambda o: (o.created_at, o.id), reverse=True)

    def update_order(self, order_id: int, fields: dict) -> Optional[Order]:
        order = self.get_order(order_id)
        if not order:
            return None
        return self._update(order, fields)

    # Contacts
    def add_contact(self, contact: Contact) -> Contact:
        return self._insert("contacts", contact)

    def list_contacts(self) -> list[Contact]:
        return sorted(self._rows("contacts"), key=lambda c: (c.created_at, c.id), reverse=True)

    def update_contact(self, contact_id: int, fields: dict) -> Optional[Contact]:
        contact = self.store.tables["contacts"].get(contact_id)
        if not contact:
            return None
        return self._update(contact, fields)

    # Abandoned carts
    def get_open_cart(self, email: str) -> Optional[AbandonedCart]:
        carts = [c for c in self._rows("abandoned_carts") if c.customer_email == email and not c.converted]
        return max(carts, key=lambda c: c.id) if carts else None

    def add_cart(self, cart: AbandonedCart) -> AbandonedCart:
        return self._insert("abandoned_carts", cart)

    def update_cart(self, cart_id: int, fields: dict) -> Optional[AbandonedCart]:
        cart = self.store.tables["abandoned_carts"].get(cart_id)
        if not cart:
            return None
        return self._update(cart, fields)

    def carts_for_recovery(self, cutoff: datetime) -> list[AbandonedCart]:
        rows = [
            c for c in self._rows("abandoned_carts")
            if not c.recovery_email_sent and not c.converted and c.created_at < cutoff
        ]
        return sorted(rows, key=lambda c: (c.created_at, c.id))

    def mark_recovery_sent(self, cart_id: int, sent_at: datetime) -> bool:
        with self.store.lock:
            cart = self.store.tables["abandoned_carts"].get(cart_id)
            if not cart or cart.converted:
                return False
            self._update(cart, {
                "recovery_email_sent": True,
                "recovery_email_sent_at": sent_at,
                "updated_at": sent_at,
            })
            return True

    def mark_converted(self, email: str, order_number: str) -> int:
        with self.store.lock:
            count = 0
            for cart in self._rows("abandoned_carts"):
                if cart.customer_email == email and not cart.converted:
                    self._update(cart, {"converted": True, "converted_order_number": order_number})
                    count += 1
            return count

    # Users
    def get_user(self, user_id: int) -> Optional[User]:
        return self.store.tables["users"].get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        for user in self._rows("users"):
            if user.email == email:
                return user
        return None

    def add_user(self, user: User) -> User:
        return self._insert("users", user)

    def update_user(self, user_id: int, fields: dict) -> Optional[User]:
        user = self.get_user(user_id)
        if not user:
            return None
        return self._update(user, fields)
