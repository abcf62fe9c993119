# marketplace/product_service/main.py
import threading

from fastapi import FastAPI, HTTPException

from marketplace.domain.schemas import CatalogProduct, StockChange, StockChangeIn

app = FastAPI(title="Product Service (dev mock)")

_lock = threading.Lock()

PRODUCTS = {
    1: {"id": 1, "name": "Tomatoes", "price": "100.00", "unit": "kg", "stock": 50, "seller_id": 2},
    2: {"id": 2, "name": "Spinach", "price": "40.00", "unit": "bunch", "stock": 20, "seller_id": 2},
    3: {"id": 3, "name": "Honey", "price": "650.00", "unit": "liter", "stock": 5, "seller_id": 3},
}


def _get_or_404(product_id: int) -> dict:
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.get("/products/{product_id}", response_model=CatalogProduct)
def get_product(product_id: int):
    return _get_or_404(product_id)


@app.post("/products/{product_id}/stock/decrement", response_model=StockChange)
def decrement_stock(product_id: int, payload: StockChangeIn):
    #compare and decrement under one lock
    with _lock:
        product = _get_or_404(product_id)
        if product["stock"] < payload.quantity:
            return StockChange(applied=False, current_stock=product["stock"])
        product["stock"] -= payload.quantity
        if product["stock"] == 0:
            product["status"] = "out-of-stock"
        return StockChange(applied=True, current_stock=product["stock"])


@app.post("/products/{product_id}/stock/increment", response_model=StockChange)
def increment_stock(product_id: int, payload: StockChangeIn):
    with _lock:
        product = _get_or_404(product_id)
        product["stock"] += payload.quantity
        if product.get("status") == "out-of-stock":
            product["status"] = "active"
        return StockChange(applied=True, current_stock=product["stock"])
