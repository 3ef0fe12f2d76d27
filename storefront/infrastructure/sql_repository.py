from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Sequence

from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.domain.models import (
    AbandonedCart,
    Contact,
    InventoryLog,
    Order,
    OrderItem,
    Product,
    RecentlyViewedItem,
    ShippingRate,
    User,
)
from storefront.domain.repository import OrderFilters, StockChange
from storefront.errors import DuplicateOrderNumberError


class SqlRepository:
    """Repository over one SQLAlchemy session; one ``transaction()`` is one commit."""

    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator["SqlRepository"]:
        # nested calls join the outermost transaction, which alone commits
        self._depth += 1
        try:
            yield self
            if self._depth == 1:
                self.db.commit()
        except Exception:
            if self._depth == 1:
                self.db.rollback()
            raise
        finally:
            self._depth -= 1

    def _update(self, obj, fields: dict):
        for key, value in fields.items():
            setattr(obj, key, value)
        self.db.flush()
        return obj

    # Catalog
    def list_products(self, category: Optional[str] = None) -> list[Product]:
        q = self.db.query(Product)
        if category:
            q = q.filter(Product.category == category)
        return q.order_by(Product.id).all()

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.db.query(Product).filter(Product.id == product_id).first()

    def get_products(self, product_ids: Sequence[int]) -> dict[int, Product]:
        if not product_ids:
            return {}
        rows = self.db.query(Product).filter(Product.id.in_(set(product_ids))).all()
        return {p.id: p for p in rows}

    def add_product(self, product: Product) -> Product:
        self.db.add(product)
        self.db.flush()
        return product

    def update_product(self, product_id: int, fields: dict) -> Optional[Product]:
        product = self.get_product(product_id)
        if not product:
            return None
        return self._update(product, fields)

    def delete_product(self, product_id: int) -> bool:
        product = self.get_product(product_id)
        if not product:
            return False
        self.db.query(RecentlyViewedItem).filter(RecentlyViewedItem.product_id == product_id).delete(
            synchronize_session=False
        )
        self.db.delete(product)
        self.db.flush()
        return True

    def product_has_orders(self, product_id: int) -> bool:
        return (
            self.db.query(OrderItem.id).filter(OrderItem.product_id == product_id).first()
            is not None
        )

    # Recently viewed
    def add_product_view(self, view: RecentlyViewedItem) -> RecentlyViewedItem:
        self.db.add(view)
        self.db.flush()
        return view

    def recently_viewed_product_ids(self, session_id: str, limit: int) -> list[int]:
        rows = (
            self.db.query(RecentlyViewedItem.product_id)
            .filter(RecentlyViewedItem.session_id == session_id)
            .group_by(RecentlyViewedItem.product_id)
            .order_by(func.max(RecentlyViewedItem.viewed_at).desc(), func.max(RecentlyViewedItem.id).desc())
            .limit(limit)
            .all()
        )
        return [row.product_id for row in rows]

    def delete_views_before(self, cutoff: datetime) -> int:
        return (
            self.db.query(RecentlyViewedItem)
            .filter(RecentlyViewedItem.viewed_at < cutoff)
            .delete(synchronize_session=False)
        )

    # Stock ledger
    def decrement_stock(self, product_id: int, quantity: int) -> Optional[StockChange]:
        product = self.get_product(product_id)
        if not product:
            return None
        # read only feeds the low-stock check; the written value is computed by the database
        previous = product.stock_quantity
        remaining = Product.stock_quantity - quantity
        self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(
                stock_quantity=case((remaining > 0, remaining), else_=0),
                in_stock=case((remaining > 0, True), else_=False),
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(product)
        return StockChange(product=product, previous=previous, new=product.stock_quantity)

    def set_stock(self, product_id: int, quantity: int) -> Optional[StockChange]:
        product = self.get_product(product_id)
        if not product:
            return None
        previous = product.stock_quantity
        self._update(product, {"stock_quantity": quantity, "in_stock": quantity > 0})
        return StockChange(product=product, previous=previous, new=quantity)

    def low_stock_products(self) -> list[Product]:
        return (
            self.db.query(Product)
            .filter(Product.stock_quantity <= Product.low_stock_threshold)
            .order_by(Product.stock_quantity, Product.id)
            .all()
        )

    def add_inventory_log(self, log: InventoryLog) -> InventoryLog:
        self.db.add(log)
        self.db.flush()
        return log

    def list_inventory_logs(self, product_id: Optional[int] = None) -> list[InventoryLog]:
        q = self.db.query(InventoryLog)
        if product_id is not None:
            q = q.filter(InventoryLog.product_id == product_id)
        return q.order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc()).all()

    # Shipping
    def list_active_rates(self) -> list[ShippingRate]:
        return (
            self.db.query(ShippingRate)
            .filter(ShippingRate.active.is_(True))
            .order_by(ShippingRate.display_order, ShippingRate.id)
            .all()
        )

    def get_rate(self, rate_id: int) -> Optional[ShippingRate]:
        return self.db.query(ShippingRate).filter(ShippingRate.id == rate_id).first()

    def add_rate(self, rate: ShippingRate) -> ShippingRate:
        self.db.add(rate)
        self.db.flush()
        return rate

    # Orders
    def add_order(self, order: Order) -> Order:
        self.db.add(order)
        try:
            self.db.flush()
        except IntegrityError as exc:
            if "order_number" in str(exc.orig).lower():
                raise DuplicateOrderNumberError(order.order_number) from exc
            raise
        return order

    def get_order(self, order_id: int) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_order_by_number(self, order_number: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.order_number == order_number).first()

    def list_orders(self, filters: Optional[OrderFilters] = None) -> list[Order]:
        q = self.db.query(Order)
        if filters:
            if filters.status:
                q = q.filter(Order.status == filters.status)
            if filters.payment_status:
                q = q.filter(Order.payment_status == filters.payment_status)
            if filters.start_date:
                q = q.filter(Order.created_at >= filters.start_date)
            if filters.end_date:
                q = q.filter(Order.created_at <= filters.end_date)
        return q.order_by(Order.created_at.desc(), Order.id.desc()).all()

    def update_order(self, order_id: int, fields: dict) -> Optional[Order]:
        order = self.get_order(order_id)
        if not order:
            return None
        return self._update(order, fields)

    # Contacts
    def add_contact(self, contact: Contact) -> Contact:
        self.db.add(contact)
        self.db.flush()
        return contact

    def list_contacts(self) -> list[Contact]:
        return self.db.query(Contact).order_by(Contact.created_at.desc(), Contact.id.desc()).all()

    def update_contact(self, contact_id: int, fields: dict) -> Optional[Contact]:
        contact = self.db.query(Contact).filter(Contact.id == contact_id).first()
        if not contact:
            return None
        return self._update(contact, fields)

    # Abandoned carts
    def get_open_cart(self, email: str) -> Optional[AbandonedCart]:
        return (
            self.db.query(AbandonedCart)
            .filter(AbandonedCart.customer_email == email, AbandonedCart.converted.is_(False))
            .order_by(AbandonedCart.id.desc())
            .first()
        )

    def add_cart(self, cart: AbandonedCart) -> AbandonedCart:
        self.db.add(cart)
        self.db.flush()
        return cart

    def update_cart(self, cart_id: int, fields: dict) -> Optional[AbandonedCart]:
        cart = self.db.query(AbandonedCart).filter(AbandonedCart.id == cart_id).first()
        if not cart:
            return None
        return self._update(cart, fields)

    def carts_for_recovery(self, cutoff: datetime) -> list[AbandonedCart]:
        return (
            self.db.query(AbandonedCart)
            .filter(
                AbandonedCart.recovery_email_sent.is_(False),
                AbandonedCart.converted.is_(False),
                AbandonedCart.created_at < cutoff,
            )
            .order_by(AbandonedCart.created_at, AbandonedCart.id)
            .all()
        )

    def mark_recovery_sent(self, cart_id: int, sent_at: datetime) -> bool:
        result = self.db.execute(
            update(AbandonedCart)
            .where(AbandonedCart.id == cart_id, AbandonedCart.converted.is_(False))
            .values(recovery_email_sent=True, recovery_email_sent_at=sent_at, updated_at=sent_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def mark_converted(self, email: str, order_number: str) -> int:
        result = self.db.execute(
            update(AbandonedCart)
            .where(AbandonedCart.customer_email == email, AbandonedCart.converted.is_(False))
            .values(
                converted=True,
                converted_order_number=order_number,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # Users
    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def add_user(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user

    def update_user(self, user_id: int, fields: dict) -> Optional[User]:
        user = self.get_user(user_id)
        if not user:
            return None
        return self._update(user, fields)
