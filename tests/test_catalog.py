import copy
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient

from marketplace.data.models import ProductModel
from marketplace.domain.errors import InsufficientStock, ProductUnavailable
from marketplace.product_service import main as product_service
from marketplace.services.checkout_service import CheckoutService
from marketplace.services.product_client import ProductClient

from tests.support import BUYER_ID, OTHER_SELLER_ID, SELLER_ID


# local SQL store

def test_get_product(catalog, make_product):
    a = make_product("Tomatoes", "99.50", 7)

    product = catalog.get_product(a)

    assert product.name == "Tomatoes"
    assert product.price == Decimal("99.50")
    assert product.stock == 7
    assert product.seller_id == SELLER_ID
    assert product.is_available
    assert catalog.get_product(999) is None


def test_conditional_decrement_applies_only_when_enough_stock(catalog, make_product, db):
    a = make_product("A", 10, 5)

    first = catalog.conditional_decrement_stock(a, 3)
    second = catalog.conditional_decrement_stock(a, 3)

    assert (first.applied, first.current_stock) == (True, 2)
    assert (second.applied, second.current_stock) == (False, 2)
    assert db.get(ProductModel, a, populate_existing=True).total_sold == 3


def test_decrement_to_zero_marks_out_of_stock(catalog, make_product, db):
    a = make_product("A", 10, 2)

    change = catalog.conditional_decrement_stock(a, 2)

    assert change.applied
    product = db.get(ProductModel, a, populate_existing=True)
    assert product.stock == 0
    assert product.status == "out-of-stock"
    assert not catalog.get_product(a).is_available


def test_decrement_missing_product(catalog, users):
    change = catalog.conditional_decrement_stock(999, 1)

    assert not change.applied
    assert change.current_stock == 0


def test_decrement_rejects_non_positive_quantity(catalog, make_product):
    a = make_product("A", 10, 2)

    with pytest.raises(ValueError):
        catalog.conditional_decrement_stock(a, 0)


def test_increment_leaves_discontinued_products_alone(catalog, make_product, db):
    a = make_product("A", 10, 0, status="discontinued")

    assert catalog.increment_stock(a, 4) is True

    product = db.get(ProductModel, a, populate_existing=True)
    assert product.stock == 4
    assert product.status == "discontinued"


def test_increment_missing_product(catalog, users):
    assert catalog.increment_stock(999, 1) is False


# HTTP client

def response(status_code, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return resp


PRODUCT = {"id": 1, "name": "Tomatoes", "price": "100.00", "unit": "kg", "stock": 50, "seller_id": 2}


def test_client_reads_product():
    session = MagicMock()
    session.get.return_value = response(200, PRODUCT)
    client = ProductClient("http://products:8001/", session=session)

    product = client.get_product(1)

    session.get.assert_called_once_with("http://products:8001/products/1", timeout=2)
    assert product.price == Decimal("100.00")
    assert product.status == "active"


def test_client_missing_product_is_none():
    session = MagicMock()
    session.get.return_value = response(404)

    assert ProductClient("http://products", session=session).get_product(1) is None


def test_client_retries_reads():
    session = MagicMock()
    session.get.side_effect = [requests.ConnectionError("reset"), response(200, PRODUCT)]

    product = ProductClient("http://products", session=session).get_product(1)

    assert product.id == 1
    assert session.get.call_count == 2


def test_client_does_not_retry_stock_writes():
    session = MagicMock()
    session.post.side_effect = requests.Timeout("slow")
    client = ProductClient("http://products", session=session)

    with pytest.raises(requests.Timeout):
        client.conditional_decrement_stock(1, 2)

    session.post.assert_called_once_with(
        "http://products/products/1/stock/decrement", json={"quantity": 2}, timeout=2
    )


def test_client_server_error_propagates():
    session = MagicMock()
    session.post.return_value = response(500)

    with pytest.raises(requests.HTTPError):
        ProductClient("http://products", session=session).increment_stock(1, 1)


@pytest.fixture
def product_api(monkeypatch):
    monkeypatch.setattr(product_service, "PRODUCTS", copy.deepcopy(product_service.PRODUCTS))
    with TestClient(product_service.app) as client:
        yield client


@pytest.fixture
def http_catalog(product_api):
    return ProductClient("http://testserver", session=product_api)


def test_client_against_product_service(http_catalog):
    honey = http_catalog.get_product(3)
    assert (honey.name, honey.stock, honey.seller_id) == ("Honey", 5, OTHER_SELLER_ID)

    short = http_catalog.conditional_decrement_stock(3, 6)
    assert (short.applied, short.current_stock) == (False, 5)

    taken = http_catalog.conditional_decrement_stock(3, 5)
    assert (taken.applied, taken.current_stock) == (True, 0)
    assert http_catalog.get_product(3).status == "out-of-stock"

    assert http_catalog.increment_stock(3, 2) is True
    restored = http_catalog.get_product(3)
    assert (restored.stock, restored.status) == (2, "active")

    assert http_catalog.get_product(99) is None
    assert http_catalog.increment_stock(99, 1) is False
    assert http_catalog.conditional_decrement_stock(99, 1).applied is False


def test_product_service_rejects_non_positive_quantity(product_api):
    resp = product_api.post("/products/1/stock/decrement", json={"quantity": 0})

    assert resp.status_code == 422


def test_checkout_through_product_service(db, users, http_catalog, notifier, checkout_payload):
    service = CheckoutService(db, http_catalog, notifier=notifier)
    service.carts.add_item(BUYER_ID, 1, 2)
    service.carts.add_item(BUYER_ID, 3, 1)

    order = service.checkout(BUYER_ID, checkout_payload)

    assert order.subtotal == Decimal("850.00")
    assert order.tax == Decimal("111")  # 110.5 rounds up
    assert order.total == Decimal("1011.00")
    assert http_catalog.get_product(1).stock == 48
    assert http_catalog.get_product(3).stock == 4
    assert {i.seller_name for i in order.items} == {"Green Farm", "Hill Apiary"}


def test_checkout_through_product_service_validates_stock(db, users, http_catalog, notifier, checkout_payload):
    service = CheckoutService(db, http_catalog, notifier=notifier)
    service.carts.add_item(BUYER_ID, 1, 2)
    service.carts.add_item(BUYER_ID, 3, 6)

    with pytest.raises(ProductUnavailable, match='Only 5 liter available for "Honey"'):
        service.checkout(BUYER_ID, checkout_payload)

    assert http_catalog.get_product(1).stock == 50


def test_checkout_through_product_service_compensates_lost_race(db, users, http_catalog, notifier, checkout_payload):
    service = CheckoutService(db, http_catalog, notifier=notifier)
    service.carts.add_item(BUYER_ID, 1, 2)
    service.carts.add_item(BUYER_ID, 3, 3)

    real_decrement = http_catalog.conditional_decrement_stock

    def racing_decrement(product_id, quantity):
        if product_id == 3:
            # someone else buys the honey first
            real_decrement(3, 4)
        return real_decrement(product_id, quantity)

    service.catalog = MagicMock(wraps=http_catalog)
    service.catalog.conditional_decrement_stock.side_effect = racing_decrement

    with pytest.raises(InsufficientStock):
        service.checkout(BUYER_ID, checkout_payload)

    assert http_catalog.get_product(1).stock == 50
    assert http_catalog.get_product(3).stock == 1
