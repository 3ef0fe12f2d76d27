"""Pure checkout rules: order numbers, totals, shipping promotion, lifecycles."""

import secrets
import string
import time
from typing import Iterable, Optional, Sequence

from .models import OrderStatus, PaymentStatus, Product, ShippingRate

ORDER_NUMBER_PREFIX = "SR"
ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
ORDER_NUMBER_SUFFIX_LENGTH = 8

ORDER_STATUS_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

PAYMENT_STATUS_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING, PaymentStatus.COMPLETED},
    PaymentStatus.COMPLETED: set(),
}


def _base36(value: int) -> str:
    digits = string.digits + string.ascii_uppercase
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def generate_order_number(now: Optional[float] = None) -> str:
    """Return e.g. ``SRM2X8K1ZQ7HD4RB2``: prefix, base-36 ms timestamp, random suffix."""
    millis = int((now if now is not None else time.time()) * 1000)
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(ORDER_NUMBER_SUFFIX_LENGTH))
    return f"{ORDER_NUMBER_PREFIX}{_base36(millis)}{suffix}"


def line_total(quantity: int, price_per_unit: int) -> int:
    return quantity * price_per_unit


def compute_subtotal(lines: Iterable[tuple[int, int]]) -> int:
    """Sum of quantity x unit price, in cents."""
    return sum(line_total(quantity, price) for quantity, price in lines)


def qualifies_for_free_shipping(products: Sequence[Product], promo_weights: Sequence[int]) -> bool:
    return any(p.weight_grams is not None and p.weight_grams in promo_weights for p in products)


def shipping_cost_for(
    rate: ShippingRate,
    products: Sequence[Product],
    promo_weights: Sequence[int],
    promo_carrier: str,
    promo_service: str,
) -> int:
    if (
        rate.carrier == promo_carrier
        and rate.service_name == promo_service
        and qualifies_for_free_shipping(products, promo_weights)
    ):
        return 0
    return rate.base_rate


def can_transition_order(current: str, target: str) -> bool:
    return OrderStatus(target) in ORDER_STATUS_TRANSITIONS[OrderStatus(current)]


def can_transition_payment(current: str, target: str) -> bool:
    return PaymentStatus(target) in PAYMENT_STATUS_TRANSITIONS[PaymentStatus(current)]
