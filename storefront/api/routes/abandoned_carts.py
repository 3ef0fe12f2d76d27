import json

from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_cart_service
from storefront.api.security import Capability, requires
from storefront.application.abandoned_carts import AbandonedCartService
from storefront.application.schemas import AbandonedCartRead, CheckoutStarted, OpenCartRead, RecoveryRunResult
from storefront.errors import NotFoundError

router = APIRouter(prefix="/abandoned-carts", tags=["abandoned-carts"])
admin_router = APIRouter(
    prefix="/admin/abandoned-carts",
    tags=["admin"],
    dependencies=[Depends(requires(Capability.RUN_RECOVERY))],
)


@router.post("/checkout-started", status_code=202)
def checkout_started(payload: CheckoutStarted, service: AbandonedCartService = Depends(get_cart_service)):
    cart = service.record_checkout_started(payload.email, payload.name, payload.items, payload.total_amount)
    return {"tracked": True, "id": cart.id}


@router.get("/open", response_model=OpenCartRead)
def get_open_cart(email: str = Query(min_length=3), service: AbandonedCartService = Depends(get_cart_service)):
    # backs the recovery link; shopper details stay admin-only
    cart = service.get_open_cart(email)
    if cart is None:
        raise NotFoundError("Open cart for", email)
    return OpenCartRead(
        id=cart.id,
        items=json.loads(cart.cart_data),
        total_amount=cart.total_amount,
        created_at=cart.created_at,
    )


@admin_router.get("/due", response_model=list[AbandonedCartRead])
def list_due_carts(service: AbandonedCartService = Depends(get_cart_service)):
    return service.find_carts_for_recovery()


@admin_router.post("/recover", response_model=RecoveryRunResult)
def trigger_recovery(service: AbandonedCartService = Depends(get_cart_service)):
    return service.run_recovery()
