from typing import Optional

from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_repository
from storefront.api.security import Capability, requires
from storefront.application.inventory import InventoryService
from storefront.application.schemas import InventoryLogRead, ProductRead, StockUpdate, ThresholdUpdate
from storefront.domain.repository import Repository

router = APIRouter(prefix="/inventory", tags=["inventory"])
admin_router = APIRouter(
    prefix="/admin/inventory",
    tags=["admin"],
    dependencies=[Depends(requires(Capability.MANAGE_INVENTORY))],
)


@router.get("/availability/{product_id}")
def check_availability(product_id: int, quantity: int = Query(default=1, ge=1),
                       repo: Repository = Depends(get_repository)):
    return InventoryService(repo).check_availability(product_id, quantity)


@admin_router.put("/{product_id}/stock", response_model=ProductRead)
def update_stock(product_id: int, payload: StockUpdate, repo: Repository = Depends(get_repository)):
    return InventoryService(repo).update_stock(product_id, payload.stock_quantity, payload.reason)


@admin_router.put("/{product_id}/threshold", response_model=ProductRead)
def update_threshold(product_id: int, payload: ThresholdUpdate, repo: Repository = Depends(get_repository)):
    return InventoryService(repo).update_threshold(product_id, payload.low_stock_threshold)


@admin_router.get("/low-stock", response_model=list[ProductRead])
def get_low_stock(repo: Repository = Depends(get_repository)):
    return InventoryService(repo).get_low_stock()


@admin_router.get("/logs", response_model=list[InventoryLogRead])
def list_inventory_logs(product_id: Optional[int] = Query(default=None), repo: Repository = Depends(get_repository)):
    return InventoryService(repo).list_logs(product_id)
