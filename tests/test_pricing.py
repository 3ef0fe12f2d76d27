import re

import pytest

from storefront.domain.models import Product, ShippingRate
from storefront.domain.pricing import (
    can_transition_order,
    can_transition_payment,
    compute_subtotal,
    generate_order_number,
    shipping_cost_for,
)

ORDER_NUMBER = re.compile(r"^SR[A-Z0-9]+$")
PROMO = ([3, 5, 10], "UPS", "UPS 2nd Day Air")
BASE_RATES = {"UPS 2nd Day Air": 2800, "UPS Ground": 1200}


def test_subtotal_is_sum_of_quantity_times_price():
    assert compute_subtotal([(2, 12900), (1, 4900)]) == 30700
    assert compute_subtotal([]) == 0


def test_order_numbers_are_unique_and_well_formed():
    numbers = {generate_order_number() for _ in range(200)}
    assert len(numbers) == 200
    assert all(ORDER_NUMBER.match(n) for n in numbers)


def test_order_number_encodes_timestamp():
    assert generate_order_number(now=0).startswith("SR0")
    # 1000 ms is "RS" in base 36
    assert generate_order_number(now=1)[2:4] == "RS"


@pytest.mark.parametrize("weight,service,expected", [
    (5, "UPS 2nd Day Air", 0),
    (3, "UPS 2nd Day Air", 0),
    (1, "UPS 2nd Day Air", 2800),
    (5, "UPS Ground", 1200),
    (None, "UPS 2nd Day Air", 2800),
])
def test_free_shipping_promotion(weight, service, expected):
    rate = ShippingRate(carrier="UPS", service_name=service, base_rate=BASE_RATES[service])
    product = Product(name="p", price_cents=100, weight_grams=weight)
    assert shipping_cost_for(rate, [product], *PROMO) == expected


def test_promotion_requires_matching_carrier():
    rate = ShippingRate(carrier="USPS", service_name="UPS 2nd Day Air", base_rate=900)
    assert shipping_cost_for(rate, [Product(name="p", price_cents=1, weight_grams=5)], *PROMO) == 900


def test_promotion_applies_when_any_product_qualifies():
    rate = ShippingRate(carrier="UPS", service_name="UPS 2nd Day Air", base_rate=2800)
    products = [Product(name="a", price_cents=1, weight_grams=1), Product(name="b", price_cents=1, weight_grams=10)]
    assert shipping_cost_for(rate, products, *PROMO) == 0


class TestLifecycles:
    def test_order_moves_forward_only(self):
        assert can_transition_order("pending", "processing")
        assert can_transition_order("processing", "shipped")
        assert can_transition_order("shipped", "delivered")
        assert not can_transition_order("pending", "shipped")
        assert not can_transition_order("delivered", "pending")

    def test_cancellation_only_before_shipping(self):
        assert can_transition_order("pending", "cancelled")
        assert can_transition_order("processing", "cancelled")
        assert not can_transition_order("shipped", "cancelled")
        assert not can_transition_order("cancelled", "processing")

    def test_payment_completed_is_final(self):
        assert can_transition_payment("pending", "completed")
        assert can_transition_payment("failed", "pending")
        assert not can_transition_payment("completed", "failed")
        assert not can_transition_payment("completed", "pending")
