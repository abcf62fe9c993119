from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from marketplace.data.models import CartModel, ProductModel
from marketplace.domain.errors import InvalidQuantity, PersistenceError

from tests.support import BUYER_ID, SELLER_ID


def test_cart_is_created_lazily(cart_service, db, users):
    assert db.execute(select(CartModel)).first() is None

    summary = cart_service.get_cart_summary(BUYER_ID)

    assert summary.user_id == BUYER_ID
    assert summary.items == []
    assert summary.total_value == Decimal("0")


def test_readding_a_product_merges_quantities(cart_service, make_product):
    tomatoes = make_product("Tomatoes", 100, 50)

    cart_service.add_item(BUYER_ID, tomatoes, 2)
    summary = cart_service.add_item(BUYER_ID, tomatoes, 3)

    assert len(summary.items) == 1
    assert summary.items[0].quantity == 5
    assert summary.total_items == 5


def test_add_does_not_cap_at_stock(cart_service, make_product):
    honey = make_product("Honey", 650, 2, unit="liter")

    summary = cart_service.add_item(BUYER_ID, honey, 5)

    line = summary.items[0]
    assert line.quantity == 5
    assert line.available is False
    assert line.note == "Only 2 liter available"


@pytest.mark.parametrize("quantity", [0, -1])
def test_add_rejects_non_positive_quantity(cart_service, make_product, quantity):
    tomatoes = make_product("Tomatoes", 100, 50)

    with pytest.raises(InvalidQuantity):
        cart_service.add_item(BUYER_ID, tomatoes, quantity)


def test_update_replaces_quantity(cart_service, make_product):
    tomatoes = make_product("Tomatoes", 100, 50)
    cart_service.add_item(BUYER_ID, tomatoes, 4)

    summary = cart_service.update_item(BUYER_ID, tomatoes, 1)

    assert summary.items[0].quantity == 1


def test_update_to_zero_removes_line(cart_service, make_product):
    tomatoes = make_product("Tomatoes", 100, 50)
    spinach = make_product("Spinach", 40, 20, unit="bunch")
    cart_service.add_item(BUYER_ID, tomatoes, 1)
    cart_service.add_item(BUYER_ID, spinach, 1)

    summary = cart_service.update_item(BUYER_ID, tomatoes, 0)

    assert [i.product_id for i in summary.items] == [spinach]


def test_remove_missing_product_is_a_noop(cart_service, make_product):
    tomatoes = make_product("Tomatoes", 100, 50)
    cart_service.add_item(BUYER_ID, tomatoes, 1)

    summary = cart_service.remove_item(BUYER_ID, 999)

    assert len(summary.items) == 1


def test_clear_empties_but_keeps_the_cart(cart_service, make_product, db):
    tomatoes = make_product("Tomatoes", 100, 50)
    first = cart_service.add_item(BUYER_ID, tomatoes, 2)

    summary = cart_service.clear(BUYER_ID)

    assert summary.items == []
    assert summary.cart_id == first.cart_id
    assert db.execute(select(CartModel).where(CartModel.user_id == BUYER_ID)).first() is not None


def test_mutations_bump_the_version(cart_service, make_product, db):
    tomatoes = make_product("Tomatoes", 100, 50)
    cart_service.add_item(BUYER_ID, tomatoes, 1)
    cart_service.update_item(BUYER_ID, tomatoes, 3)

    cart = db.execute(select(CartModel).where(CartModel.user_id == BUYER_ID)).scalar_one()
    db.refresh(cart)
    assert cart.version == 3


def test_summary_uses_live_price_and_seller(cart_service, make_product, db):
    tomatoes = make_product("Tomatoes", 100, 50)
    cart_service.add_item(BUYER_ID, tomatoes, 2)

    product = db.get(ProductModel, tomatoes)
    product.price = Decimal("120.00")
    db.commit()

    summary = cart_service.get_cart_summary(BUYER_ID)

    line = summary.items[0]
    assert line.price == Decimal("120.00")
    assert line.total == Decimal("240.00")
    assert line.seller_id == SELLER_ID
    assert line.seller_name == "Green Farm"
    assert line.product_image == "/img/tomatoes.jpg"
    assert summary.total_value == Decimal("240.00")


def test_summary_flags_unavailable_lines(cart_service, make_product, db):
    tomatoes = make_product("Tomatoes", 100, 50)
    spinach = make_product("Spinach", 40, 20, unit="bunch", is_active=False)
    gone = make_product("Mushrooms", 300, 4)
    for product_id in (tomatoes, spinach, gone):
        cart_service.add_item(BUYER_ID, product_id, 1)

    db.delete(db.get(ProductModel, gone))
    db.commit()

    summary = cart_service.get_cart_summary(BUYER_ID)
    by_id = {i.product_id: i for i in summary.items}

    assert by_id[tomatoes].available is True
    assert by_id[spinach].available is False
    assert by_id[spinach].note == '"Spinach" is no longer available'
    assert by_id[gone].available is False
    assert by_id[gone].note == "Product no longer exists"
    # only available lines count towards the value
    assert summary.total_value == Decimal("100.00")
    assert summary.total_items == 3


def test_cart_count(cart_service, make_product, users):
    tomatoes = make_product("Tomatoes", 100, 50)
    spinach = make_product("Spinach", 40, 20)

    assert cart_service.get_cart_count(BUYER_ID) == 0

    cart_service.add_item(BUYER_ID, tomatoes, 2)
    cart_service.add_item(BUYER_ID, spinach, 3)

    assert cart_service.get_cart_count(BUYER_ID) == 5


def test_concurrent_cart_write_is_rejected(cart_service, make_product, monkeypatch):
    tomatoes = make_product("Tomatoes", 100, 50)
    cart_service.get_or_create_cart(BUYER_ID)
    # another request bumped the version after we read the cart
    monkeypatch.setattr(cart_service.repo, "update_cart_version", lambda **kw: 0)

    with pytest.raises(PersistenceError, match="modified by another request"):
        cart_service.add_item(BUYER_ID, tomatoes, 1)

    assert cart_service.get_cart_count(BUYER_ID) == 0


def test_cart_for_a_user_without_local_record(cart_service, make_product):
    tomatoes = make_product("Tomatoes", 100, 50)

    summary = cart_service.add_item(999, tomatoes, 2)

    assert summary.user_id == 999
    assert summary.total_items == 2


def test_failed_cart_insert_is_a_persistence_error(cart_service, users, monkeypatch):
    def failing_insert(cart):
        raise IntegrityError("INSERT INTO carts", {}, Exception("constraint failed"))

    monkeypatch.setattr(cart_service.repo, "create_cart", failing_insert)

    with pytest.raises(PersistenceError, match="Could not create the cart") as exc:
        cart_service.get_or_create_cart(BUYER_ID)

    assert exc.value.details["buyer_id"] == BUYER_ID
