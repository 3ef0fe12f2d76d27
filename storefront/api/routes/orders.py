from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from storefront.api.deps import get_order_service
from storefront.api.security import Capability, requires
from storefront.application.export import export_filename, orders_to_csv
from storefront.application.orders import OrderService
from storefront.application.schemas import (
    OrderCreate,
    OrderPlaced,
    OrderRead,
    OrderStatusUpdate,
    PaymentResult,
    PaymentStatusUpdate,
    ProcessPaymentRequest,
)
from storefront.domain.models import Order, OrderStatus, PaymentMethod, PaymentStatus

router = APIRouter(prefix="/orders", tags=["orders"])
admin_router = APIRouter(
    prefix="/admin/orders",
    tags=["admin"],
    dependencies=[Depends(requires(Capability.VIEW_ORDERS))],
)


def _bitcoin_address(order: Order, service: OrderService) -> Optional[str]:
    if order.payment_method == PaymentMethod.BITCOIN.value and order.payment_status != PaymentStatus.COMPLETED.value:
        return service.settings.BITCOIN_ADDRESS
    return None


def _read(order: Order, service: OrderService) -> OrderRead:
    return OrderRead.model_validate(order).model_copy(update={"bitcoin_address": _bitcoin_address(order, service)})


@router.post("/", response_model=OrderPlaced, status_code=201)
def create_order(payload: OrderCreate, service: OrderService = Depends(get_order_service)):
    order = service.place_order(payload)
    return OrderPlaced(
        order_number=order.order_number,
        subtotal=order.subtotal,
        shipping_cost=order.shipping_cost,
        total=order.total,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        bitcoin_address=_bitcoin_address(order, service),
    )


@router.post("/process-payment", response_model=PaymentResult)
def process_payment(payload: ProcessPaymentRequest, service: OrderService = Depends(get_order_service)):
    order, result = service.process_payment(payload.order_number, payload.source_id)
    return PaymentResult(
        order_number=order.order_number,
        payment_status=order.payment_status,
        payment_id=result.payment_id,
        receipt_url=result.receipt_url,
    )


@router.get("/{order_number}", response_model=OrderRead)
def get_order_by_number(order_number: str, service: OrderService = Depends(get_order_service)):
    return _read(service.get_by_number(order_number), service)


@admin_router.get("/", response_model=list[OrderRead])
def list_orders(service: OrderService = Depends(get_order_service)):
    return service.list_orders()


@admin_router.get("/filter", response_model=list[OrderRead])
def filter_orders(
    status: Optional[OrderStatus] = Query(default=None),
    payment_status: Optional[PaymentStatus] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    service: OrderService = Depends(get_order_service),
):
    return service.filter_orders(
        status=status.value if status else None,
        payment_status=payment_status.value if payment_status else None,
        start_date=start_date,
        end_date=end_date,
    )


@admin_router.get("/export", dependencies=[Depends(requires(Capability.EXPORT_DATA))])
def export_orders(
    status: Optional[OrderStatus] = Query(default=None),
    payment_status: Optional[PaymentStatus] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    service: OrderService = Depends(get_order_service),
):
    orders = service.filter_orders(
        status=status.value if status else None,
        payment_status=payment_status.value if payment_status else None,
        start_date=start_date,
        end_date=end_date,
    )
    return Response(
        content=orders_to_csv(orders),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={export_filename('orders')}"},
    )


@admin_router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: int, service: OrderService = Depends(get_order_service)):
    return _read(service.get_order(order_id), service)


@admin_router.put(
    "/{order_id}/status",
    response_model=OrderRead,
    dependencies=[Depends(requires(Capability.MANAGE_ORDERS))],
)
def update_order_status(order_id: int, payload: OrderStatusUpdate, service: OrderService = Depends(get_order_service)):
    return service.update_status(order_id, payload.status.value, payload.tracking_number)


@admin_router.put(
    "/{order_id}/payment-status",
    response_model=OrderRead,
    dependencies=[Depends(requires(Capability.MANAGE_ORDERS))],
)
def update_payment_status(
    order_id: int, payload: PaymentStatusUpdate, service: OrderService = Depends(get_order_service)
):
    return service.update_payment_status(order_id, payload.payment_status.value)
