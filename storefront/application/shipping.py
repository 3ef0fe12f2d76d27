from typing import Optional, Sequence

from storefront.core_settings import Settings
from storefront.domain.models import Product, ShippingRate
from storefront.domain.pricing import shipping_cost_for
from storefront.domain.repository import Repository
from storefront.errors import NotFoundError


class ShippingService:
    def __init__(self, repo: Repository, settings: Settings):
        self.repo = repo
        self.settings = settings

    def get_rates(self) -> list[ShippingRate]:
        return self.repo.list_active_rates()

    def get_active_rate(self, rate_id: int) -> ShippingRate:
        rate = self.repo.get_rate(rate_id)
        # a disabled rate is not offered at checkout
        if rate is None or not rate.active:
            raise NotFoundError("Shipping rate", rate_id)
        return rate

    def quote_shipping(self, rate: ShippingRate, products: Sequence[Product]) -> int:
        return shipping_cost_for(
            rate,
            products,
            self.settings.FREE_SHIPPING_WEIGHTS,
            self.settings.FREE_SHIPPING_CARRIER,
            self.settings.FREE_SHIPPING_SERVICE,
        )

    def quote_rates(self, product_ids: Optional[Sequence[int]] = None) -> list[dict]:
        """Active rates with the cost each would have for a cart of these products."""
        products = list(self.repo.get_products(product_ids).values()) if product_ids else []
        return [
            {
                "id": rate.id,
                "carrier": rate.carrier,
                "service_name": rate.service_name,
                "description": rate.description,
                "estimated_days": rate.estimated_days,
                "base_rate": rate.base_rate,
                "cost": self.quote_shipping(rate, products),
                "display_order": rate.display_order,
            }
            for rate in self.get_rates()
        ]
