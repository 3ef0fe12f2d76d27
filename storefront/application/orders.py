import uuid
from datetime import date, datetime, time
from typing import Optional

from storefront.core.logging_config import get_logger
from storefront.core_settings import Settings
from storefront.domain.models import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.pricing import (
    can_transition_order,
    can_transition_payment,
    compute_subtotal,
    generate_order_number,
)
from storefront.domain.repository import OrderFilters, Repository, StockChange
from storefront.errors import (
    BadRequestError,
    ConflictError,
    DuplicateOrderNumberError,
    NotFoundError,
    OrderNotFoundError,
    PaymentDeclinedError,
    PaymentGatewayUnavailableError,
)
from storefront.infrastructure.payments import CardGateway, ChargeResult
from .inventory import InventoryService
from .notifier import Notifier
from .schemas import OrderCreate
from .shipping import ShippingService

logger = get_logger(__name__)

MAX_ORDER_NUMBER_ATTEMPTS = 3
END_OF_DAY = time(23, 59, 59, 999000)


class OrderService:
    def __init__(
        self,
        repo: Repository,
        settings: Settings,
        notifier: Optional[Notifier] = None,
        gateway: Optional[CardGateway] = None,
    ):
        self.repo = repo
        self.settings = settings
        self.notifier = notifier
        self.gateway = gateway
        self.inventory = InventoryService(repo, notifier)
        self.shipping = ShippingService(repo, settings)

    def place_order(self, data: OrderCreate) -> Order:
        """Price, persist and reserve stock for a cart in one transaction.

        Emails (low-stock alerts, the Bitcoin payment instructions) are sent
        only after the commit and never undo it.
        """
        if not data.items:
            raise BadRequestError("Cart is empty")

        for attempt in range(1, MAX_ORDER_NUMBER_ATTEMPTS + 1):
            try:
                order, changes = self._place_once(data)
                break
            except DuplicateOrderNumberError as exc:
                logger.warning(
                    "Order number collision, retrying",
                    extra={"extra_fields": {"order_number": exc.order_number, "attempt": attempt}},
                )
                if attempt == MAX_ORDER_NUMBER_ATTEMPTS:
                    raise

        logger.info(
            "Order placed",
            extra={"extra_fields": {
                "order_number": order.order_number,
                "total": order.total,
                "payment_method": order.payment_method,
                "items": len(order.items),
            }},
        )
        self.inventory.notify_low_stock(changes)
        if self.notifier and order.payment_method == PaymentMethod.BITCOIN.value:
            self.notifier.send_order_confirmation(order)
        return order

    def _place_once(self, data: OrderCreate) -> tuple[Order, list[StockChange]]:
        with self.repo.transaction():
            rate = self.shipping.get_active_rate(data.shipping_rate_id)
            products = self.repo.get_products([item.product_id for item in data.items])
            for item in data.items:
                if item.product_id not in products:
                    raise NotFoundError("Product", item.product_id)

            # live prices are copied onto the items so later catalog edits don't alter the order
            lines = [(item, products[item.product_id]) for item in data.items]
            subtotal = compute_subtotal((item.quantity, product.price_cents) for item, product in lines)
            shipping_cost = self.shipping.quote_shipping(rate, list(products.values()))
            customer = data.customer

            order = Order(
                order_number=generate_order_number(),
                customer_name=customer.name,
                customer_email=customer.email,
                customer_phone=customer.phone,
                shipping_address=customer.address,
                shipping_city=customer.city,
                shipping_state=customer.state,
                shipping_zip=customer.zip,
                shipping_country=customer.country,
                shipping_carrier=rate.carrier,
                shipping_service=rate.service_name,
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                payment_method=data.payment_method.value,
                subtotal=subtotal,
                shipping_cost=shipping_cost,
                total=subtotal + shipping_cost,
                customer_notes=data.customer_notes,
                items=[
                    OrderItem(
                        product_id=product.id,
                        product_name=product.name,
                        quantity=item.quantity,
                        price_per_unit=product.price_cents,
                    )
                    for item, product in lines
                ],
            )
            self.repo.add_order(order)

            changes = [
                self.inventory.decrement_stock(item.product_id, item.quantity, f"Order {order.order_number}")
                for item in data.items
            ]
            self.repo.mark_converted(customer.email, order.order_number)
        return order, changes

    def get_order(self, order_id: int) -> Order:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        return order

    def get_by_number(self, order_number: str) -> Order:
        order = self.repo.get_order_by_number(order_number)
        if not order:
            raise OrderNotFoundError(order_number)
        return order

    def list_orders(self) -> list[Order]:
        return self.repo.list_orders()

    def filter_orders(
        self,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Order]:
        filters = OrderFilters(
            status=status,
            payment_status=payment_status,
            start_date=datetime.combine(start_date, time.min) if start_date else None,
            end_date=datetime.combine(end_date, END_OF_DAY) if end_date else None,
        )
        return self.repo.list_orders(filters)

    def update_status(self, order_id: int, status: str, tracking_number: Optional[str] = None) -> Order:
        target = OrderStatus(status).value
        with self.repo.transaction():
            order = self.get_order(order_id)
            fields = {}
            if target != order.status:
                if not can_transition_order(order.status, target):
                    raise ConflictError(
                        f"Cannot change order {order.order_number} from {order.status} to {target}",
                        code="INVALID_STATUS_TRANSITION",
                    )
                fields["status"] = target
            if tracking_number is not None:
                fields["tracking_number"] = tracking_number
            if fields:
                self.repo.update_order(order.id, fields)
        logger.info(
            "Order status updated",
            extra={"extra_fields": {"order_number": order.order_number, "status": order.status}},
        )
        return order

    def update_payment_status(self, order_id: int, payment_status: str) -> Order:
        target = PaymentStatus(payment_status).value
        with self.repo.transaction():
            order = self.get_order(order_id)
            if target != order.payment_status:
                if not can_transition_payment(order.payment_status, target):
                    raise ConflictError(
                        f"Cannot change payment of order {order.order_number} from {order.payment_status} to {target}",
                        code="INVALID_PAYMENT_TRANSITION",
                    )
                self.repo.update_order(order.id, {"payment_status": target})
        logger.info(
            "Order payment status updated",
            extra={"extra_fields": {"order_number": order.order_number, "payment_status": target}},
        )
        return order

    def process_payment(self, order_number: str, source_id: str) -> tuple[Order, ChargeResult]:
        """Charge the card token for the persisted order total.

        A decline leaves the order pending so the customer can retry with a
        new token. Each attempt uses its own idempotency key.
        """
        order = self.get_by_number(order_number)
        if order.payment_method != PaymentMethod.CARD.value:
            raise ConflictError(f"Order {order_number} is not a card order", code="PAYMENT_METHOD_MISMATCH")
        if order.payment_status == PaymentStatus.COMPLETED.value:
            raise ConflictError(f"Order {order_number} is already paid", code="ALREADY_PAID")
        if order.status == OrderStatus.CANCELLED.value:
            raise ConflictError(f"Order {order_number} was cancelled", code="ORDER_CANCELLED")
        if self.gateway is None:
            raise PaymentGatewayUnavailableError("Card payments are not configured")

        try:
            result = self.gateway.charge(
                source_id=source_id,
                amount_cents=order.total,
                idempotency_key=str(uuid.uuid4()),
                reference=order.order_number,
                buyer_email=order.customer_email,
            )
        except PaymentDeclinedError as exc:
            logger.warning(
                "Card payment declined",
                extra={"extra_fields": {"order_number": order_number, "reason": exc.message}},
            )
            raise

        with self.repo.transaction():
            self.repo.update_order(order.id, {
                "payment_status": PaymentStatus.COMPLETED.value,
                "payment_id": result.payment_id,
            })
        logger.info(
            "Card payment completed",
            extra={"extra_fields": {"order_number": order_number, "payment_id": result.payment_id}},
        )
        if self.notifier:
            self.notifier.send_order_confirmation(order)
        return order, result
