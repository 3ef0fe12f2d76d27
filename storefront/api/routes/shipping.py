from typing import Optional

from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_app_settings, get_repository
from storefront.application.schemas import ShippingRateRead
from storefront.application.shipping import ShippingService
from storefront.core_settings import Settings
from storefront.domain.repository import Repository

router = APIRouter(prefix="/shipping", tags=["shipping"])


@router.get("/rates", response_model=list[ShippingRateRead])
def get_rates(
    product_ids: Optional[list[int]] = Query(default=None),
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    """Active rates; with ``product_ids`` each rate also carries the promotional cost for that cart."""
    return ShippingService(repo, settings).quote_rates(product_ids)
