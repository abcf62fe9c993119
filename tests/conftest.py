"""
Shared pytest fixtures: a throwaway SQLite database per test, users,
a product factory and the services wired to the local catalog.
"""
import os

# settings are read at import time, point them at harmless defaults first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("CHECKOUT_LOCK_ENABLED", "false")

from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event, select
from sqlalchemy.orm import sessionmaker

from marketplace.data.database import init_db
from marketplace.data.models import OrderModel, ProductModel, UserModel
from marketplace.services.cart_service import CartService
from marketplace.services.catalog import SqlCatalogStore
from marketplace.services.checkout_service import CheckoutService
from marketplace.services.order_service import OrderService

from tests.support import (
    BUYER_ID,
    OTHER_BUYER_ID,
    OTHER_SELLER_ID,
    SELLER_ID,
    RecordingNotifier,
)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'marketplace.db'}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _enforce_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def users(db):
    db.add_all(
        [
            UserModel(id=BUYER_ID, name="Asha Buyer", email="asha@example.com", phone="9841234595", role="buyer"),
            UserModel(id=SELLER_ID, name="Green Farm", email="farm@example.com", phone="9841234596", role="seller"),
            UserModel(id=OTHER_SELLER_ID, name="Hill Apiary", email="apiary@example.com", phone="9841234597", role="seller"),
            UserModel(id=OTHER_BUYER_ID, name="Bikash Buyer", email="bikash@example.com", phone="9841234598", role="buyer"),
        ]
    )
    db.commit()


@pytest.fixture
def make_product(db, users):
    def _make(name, price, stock, seller_id=SELLER_ID, unit="kg", is_active=True, status="active"):
        product = ProductModel(
            name=name,
            price=Decimal(str(price)),
            unit=unit,
            stock=stock,
            seller_id=seller_id,
            is_active=is_active,
            status=status,
            images=[f"/img/{name.lower()}.jpg"],
        )
        db.add(product)
        db.commit()
        return product.id

    return _make


@pytest.fixture
def stock_of(db):
    def _stock(product_id):
        return db.execute(
            select(ProductModel.stock).where(ProductModel.id == product_id)
        ).scalar_one()

    return _stock


@pytest.fixture
def order_count(db):
    def _count():
        return len(db.execute(select(OrderModel.id)).scalars().all())

    return _count


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def catalog(db):
    return SqlCatalogStore(db)


@pytest.fixture
def cart_service(db, catalog):
    return CartService(db, catalog)


@pytest.fixture
def checkout_service(db, catalog, notifier):
    return CheckoutService(db, catalog, notifier=notifier)


@pytest.fixture
def order_service(db, catalog, notifier):
    return OrderService(db, catalog, notifier=notifier)


@pytest.fixture
def checkout_payload():
    return {
        "delivery_address": {"street": "123 Main St", "city": "Kathmandu"},
        "payment_method": "cod",
    }


@pytest.fixture
def place_order(cart_service, checkout_service, checkout_payload):
    """Fills the buyer's cart and checks out, returns the order."""

    def _place(*lines, buyer_id=BUYER_ID, payload=None):
        for product_id, quantity in lines:
            cart_service.add_item(buyer_id, product_id, quantity)
        return checkout_service.checkout(buyer_id, payload or checkout_payload)

    return _place
