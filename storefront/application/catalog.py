from datetime import datetime, timedelta
from typing import Optional

from storefront.core.logging_config import get_logger
from storefront.domain.models import InventoryLog, Product, RecentlyViewedItem
from storefront.domain.repository import Repository
from storefront.errors import ConflictError, NotFoundError
from .schemas import ProductCreate, ProductUpdate

logger = get_logger(__name__)

RECENTLY_VIEWED_LIMIT = 6
VIEW_RETENTION_DAYS = 30


class CatalogService:
    def __init__(self, repo: Repository):
        self.repo = repo

    def list_products(self, category: Optional[str] = None) -> list[Product]:
        return self.repo.list_products(category)

    def get_product(self, product_id: int) -> Product:
        product = self.repo.get_product(product_id)
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    def create_product(self, data: ProductCreate) -> Product:
        fields = data.model_dump(mode="json")
        product = Product(**fields, in_stock=fields["stock_quantity"] > 0)
        with self.repo.transaction():
            self.repo.add_product(product)
        logger.info("Product created", extra={"extra_fields": {"product_id": product.id, "name": product.name}})
        return product

    def update_product(self, product_id: int, data: ProductUpdate) -> Product:
        fields = data.model_dump(mode="json", exclude_unset=True)
        stock = fields.pop("stock_quantity", None)
        with self.repo.transaction():
            product = self.repo.update_product(product_id, fields)
            if product is None:
                raise NotFoundError("Product", product_id)
            if stock is not None:
                change = self.repo.set_stock(product_id, stock)
                if change.previous != change.new:
                    self.repo.add_inventory_log(InventoryLog(
                        product_id=product_id,
                        previous_quantity=change.previous,
                        new_quantity=change.new,
                        change_reason="Product edited",
                    ))
        return product

    def delete_product(self, product_id: int) -> None:
        with self.repo.transaction():
            if self.repo.get_product(product_id) is None:
                raise NotFoundError("Product", product_id)
            # order items keep a foreign key to the product for history
            if self.repo.product_has_orders(product_id):
                raise ConflictError(
                    f"Product {product_id} appears in past orders and cannot be deleted",
                    code="PRODUCT_IN_USE",
                )
            self.repo.delete_product(product_id)
        logger.info("Product deleted", extra={"extra_fields": {"product_id": product_id}})

    def record_view(self, session_id: str, product_id: int) -> RecentlyViewedItem:
        with self.repo.transaction():
            if self.repo.get_product(product_id) is None:
                raise NotFoundError("Product", product_id)
            return self.repo.add_product_view(RecentlyViewedItem(session_id=session_id, product_id=product_id))

    def recently_viewed(self, session_id: str, limit: int = RECENTLY_VIEWED_LIMIT) -> list[Product]:
        """Products viewed in a browser session, newest first, each listed once."""
        product_ids = self.repo.recently_viewed_product_ids(session_id, limit)
        products = self.repo.get_products(product_ids)
        return [products[pid] for pid in product_ids if pid in products]

    def cleanup_views(self, older_than_days: int = VIEW_RETENTION_DAYS, now: Optional[datetime] = None) -> int:
        cutoff = (now or datetime.utcnow()) - timedelta(days=older_than_days)
        with self.repo.transaction():
            deleted = self.repo.delete_views_before(cutoff)
        logger.info("Old product views removed", extra={"extra_fields": {"deleted": deleted, "cutoff": cutoff.isoformat()}})
        return deleted
