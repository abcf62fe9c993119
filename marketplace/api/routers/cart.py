#marketplace/api/routers/cart.py
from fastapi import APIRouter, Depends, Query

from marketplace.api.deps import get_cart_service
from marketplace.api.errors import to_http
from marketplace.domain.errors import MarketplaceError
from marketplace.domain.schemas import (
    CartCountOut,
    CartSummaryOut,
    ItemIn,
    ItemUpdate,
)
from marketplace.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("/", response_model=CartSummaryOut)
def get_cart(
    user_id: int = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.get_cart_summary(user_id)
    except MarketplaceError as e:
        raise to_http(e)


@router.get("/count", response_model=CartCountOut)
def get_cart_count(
    user_id: int = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    return CartCountOut(count=svc.get_cart_count(user_id))


@router.post("/items", response_model=CartSummaryOut)
def add_item(
    payload: ItemIn,
    user_id: int = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.add_item(user_id, payload.product_id, payload.quantity)
    except MarketplaceError as e:
        raise to_http(e)


@router.put("/items/{product_id}", response_model=CartSummaryOut)
def update_item(
    product_id: int,
    payload: ItemUpdate,
    user_id: int = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.update_item(user_id, product_id, payload.quantity)
    except MarketplaceError as e:
        raise to_http(e)


@router.delete("/items/{product_id}", response_model=CartSummaryOut)
def remove_item(
    product_id: int,
    user_id: int = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.remove_item(user_id, product_id)
    except MarketplaceError as e:
        raise to_http(e)


@router.delete("/", response_model=CartSummaryOut)
def clear_cart(
    user_id: int = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.clear(user_id)
    except MarketplaceError as e:
        raise to_http(e)
