# marketplace/api/routers/orders.py
from fastapi import APIRouter, Depends, Query

from marketplace.api.deps import get_checkout_service, get_order_service
from marketplace.api.errors import to_http, unwrap
from marketplace.domain.errors import MarketplaceError
from marketplace.domain.schemas import (
    CheckoutIn,
    OrderListOut,
    OrderOut,
    OrderStatsOut,
    StatusUpdateIn,
)
from marketplace.services.checkout_service import CheckoutService
from marketplace.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/", response_model=OrderOut, status_code=201)
def create_order(
    payload: CheckoutIn,
    user_id: int = Query(...),
    svc: CheckoutService = Depends(get_checkout_service),
):
    """
    Checkout: turns the buyer's cart into an order.
    """
    return unwrap(svc.create_order_from_cart(user_id, payload))


@router.get("/", response_model=OrderListOut)
def list_buyer_orders(
    user_id: int = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: str | None = None,
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.list_buyer_orders(user_id, page=page, limit=limit, status=status)
    except MarketplaceError as e:
        raise to_http(e)


@router.get("/seller", response_model=OrderListOut)
def list_seller_orders(
    user_id: int = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: str | None = None,
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.list_seller_orders(user_id, page=page, limit=limit, status=status)
    except MarketplaceError as e:
        raise to_http(e)


@router.get("/stats", response_model=OrderStatsOut)
def get_order_stats(
    user_id: int = Query(...),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.get_order_stats(user_id)
    except MarketplaceError as e:
        raise to_http(e)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Query(...),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.get_order(order_id, user_id)
    except MarketplaceError as e:
        raise to_http(e)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: StatusUpdateIn,
    user_id: int = Query(...),
    svc: OrderService = Depends(get_order_service),
):
    """
    Lifecycle transition requested by the buyer or a seller of the order.
    """
    return unwrap(svc.transition_order(order_id, payload.status, user_id, payload.reason))
