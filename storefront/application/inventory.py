from typing import Iterable, Optional

from storefront.core.logging_config import get_logger
from storefront.domain.models import InventoryLog, Product
from storefront.domain.repository import Repository, StockChange
from storefront.errors import NotFoundError
from .notifier import Notifier

logger = get_logger(__name__)


class InventoryService:
    def __init__(self, repo: Repository, notifier: Optional[Notifier] = None):
        self.repo = repo
        self.notifier = notifier

    def decrement_stock(self, product_id: int, quantity: int, reason: str) -> StockChange:
        """Reduce stock by ``quantity``, clamped at zero, and log the change.

        Joins the caller's transaction when there is one. The returned change
        tells the caller whether the low-stock threshold was crossed; the
        alert itself goes out through ``notify_low_stock`` after commit.
        """
        with self.repo.transaction():
            change = self.repo.decrement_stock(product_id, quantity)
            if change is None:
                raise NotFoundError("Product", product_id)
            self.repo.add_inventory_log(InventoryLog(
                product_id=product_id,
                previous_quantity=change.previous,
                new_quantity=change.new,
                change_reason=reason,
            ))
        return change

    def notify_low_stock(self, changes: Iterable[StockChange]) -> int:
        """Send one alert per downward threshold crossing. Returns alerts sent."""
        sent = 0
        for change in changes:
            if not change.crossed_threshold:
                continue
            logger.warning(
                "Product crossed low-stock threshold",
                extra={"extra_fields": {
                    "product_id": change.product.id,
                    "previous": change.previous,
                    "new": change.new,
                    "threshold": change.product.low_stock_threshold,
                }},
            )
            if self.notifier and self.notifier.send_low_stock_alert(change.product, change.new):
                sent += 1
        return sent

    def update_stock(self, product_id: int, quantity: int, reason: Optional[str] = None) -> Product:
        with self.repo.transaction():
            change = self.repo.set_stock(product_id, quantity)
            if change is None:
                raise NotFoundError("Product", product_id)
            if change.previous != change.new:
                self.repo.add_inventory_log(InventoryLog(
                    product_id=product_id,
                    previous_quantity=change.previous,
                    new_quantity=change.new,
                    change_reason=reason or "Manual stock update",
                ))
        logger.info(
            "Stock level set",
            extra={"extra_fields": {"product_id": product_id, "previous": change.previous, "new": change.new}},
        )
        return change.product

    def update_threshold(self, product_id: int, threshold: int) -> Product:
        with self.repo.transaction():
            product = self.repo.update_product(product_id, {"low_stock_threshold": threshold})
            if product is None:
                raise NotFoundError("Product", product_id)
        return product

    def get_low_stock(self) -> list[Product]:
        return self.repo.low_stock_products()

    def check_availability(self, product_id: int, quantity: int) -> dict:
        product = self.repo.get_product(product_id)
        if product is None:
            return {"available": False, "current_stock": 0}
        return {"available": product.stock_quantity >= quantity, "current_stock": product.stock_quantity}

    def list_logs(self, product_id: Optional[int] = None) -> list[InventoryLog]:
        return self.repo.list_inventory_logs(product_id)
