from typing import Optional

from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_repository
from storefront.api.security import Capability, requires
from storefront.application.catalog import VIEW_RETENTION_DAYS, CatalogService
from storefront.application.schemas import ProductCreate, ProductRead, ProductUpdate, ProductViewCreate
from storefront.domain.models import Category
from storefront.domain.repository import Repository

router = APIRouter(prefix="/products", tags=["products"])
admin_router = APIRouter(
    prefix="/admin/products",
    tags=["admin"],
    dependencies=[Depends(requires(Capability.MANAGE_CATALOG))],
)


@router.get("/", response_model=list[ProductRead])
def list_products(category: Optional[Category] = Query(default=None), repo: Repository = Depends(get_repository)):
    return CatalogService(repo).list_products(category.value if category else None)


@router.get("/recently-viewed", response_model=list[ProductRead])
def recently_viewed(
    session_id: str = Query(min_length=1, max_length=100), repo: Repository = Depends(get_repository)
):
    return CatalogService(repo).recently_viewed(session_id)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, repo: Repository = Depends(get_repository)):
    return CatalogService(repo).get_product(product_id)


@router.post("/{product_id}/view", status_code=201)
def record_view(product_id: int, payload: ProductViewCreate, repo: Repository = Depends(get_repository)):
    CatalogService(repo).record_view(payload.session_id, product_id)
    return {"recorded": True}


@admin_router.post("/", response_model=ProductRead, status_code=201)
def create_product(payload: ProductCreate, repo: Repository = Depends(get_repository)):
    return CatalogService(repo).create_product(payload)


@admin_router.put("/{product_id}", response_model=ProductRead)
def update_product(product_id: int, payload: ProductUpdate, repo: Repository = Depends(get_repository)):
    return CatalogService(repo).update_product(product_id, payload)


@admin_router.delete("/{product_id}", status_code=204)
def delete_product(product_id: int, repo: Repository = Depends(get_repository)):
    CatalogService(repo).delete_product(product_id)
    return None


@admin_router.post("/recently-viewed/cleanup")
def cleanup_recently_viewed(
    older_than_days: int = Query(default=VIEW_RETENTION_DAYS, ge=1), repo: Repository = Depends(get_repository)
):
    return {"deleted": CatalogService(repo).cleanup_views(older_than_days)}
