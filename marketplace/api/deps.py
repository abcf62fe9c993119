# marketplace/api/deps.py
from fastapi import Depends
from sqlalchemy.orm import Session

from marketplace.data.database import get_db
from marketplace.services.cart_service import CartService
from marketplace.services.catalog import CatalogStore, SqlCatalogStore
from marketplace.services.checkout_service import CheckoutService
from marketplace.services.lock_service import LockService
from marketplace.services.notification_service import NotificationService
from marketplace.services.order_service import OrderService
from marketplace.services.product_client import ProductClient
from marketplace.services.user_service import UserService
from marketplace.utils.settings import CATALOG_BACKEND, CHECKOUT_LOCK_ENABLED


def get_catalog(db: Session = Depends(get_db)) -> CatalogStore:
    if CATALOG_BACKEND == "http":
        return ProductClient()
    return SqlCatalogStore(db)


def get_lock_service() -> LockService | None:
    if not CHECKOUT_LOCK_ENABLED:
        return None
    return LockService()


def get_notifier() -> NotificationService:
    return NotificationService()


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


def get_cart_service(
    db: Session = Depends(get_db),
    catalog: CatalogStore = Depends(get_catalog),
) -> CartService:
    return CartService(db=db, catalog=catalog)


def get_checkout_service(
    db: Session = Depends(get_db),
    catalog: CatalogStore = Depends(get_catalog),
    lock_service: LockService | None = Depends(get_lock_service),
    notifier: NotificationService = Depends(get_notifier),
) -> CheckoutService:
    return CheckoutService(
        db=db,
        catalog=catalog,
        lock_service=lock_service,
        notifier=notifier,
    )


def get_order_service(
    db: Session = Depends(get_db),
    catalog: CatalogStore = Depends(get_catalog),
    notifier: NotificationService = Depends(get_notifier),
) -> OrderService:
    return OrderService(db=db, catalog=catalog, notifier=notifier)
