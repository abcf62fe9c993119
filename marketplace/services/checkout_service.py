# marketplace/services/checkout_service.py
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable
from uuid import uuid4

import redis
from pydantic import ValidationError as SchemaError
from requests import RequestException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import RetryError

from marketplace.data.models.cart_item import CartItemModel
from marketplace.data.models.order import OrderModel
from marketplace.data.models.order_item import OrderItemModel
from marketplace.domain.errors import (
    CheckoutInProgress,
    EmptyCart,
    InsufficientStock,
    MarketplaceError,
    OrderNumberExhausted,
    PersistenceError,
    ProductUnavailable,
    ValidationError,
)
from marketplace.domain.lifecycle import OrderStatus, PaymentStatus
from marketplace.domain.result import Result, capture
from marketplace.domain.schemas import CatalogProduct, CheckoutIn
from marketplace.repos.order_repo import OrderRepo
from marketplace.repos.user_repo import UserRepo
from marketplace.services.cart_service import CartService
from marketplace.services.catalog import CatalogStore
from marketplace.services.lock_service import LockService
from marketplace.services.notification_service import NotificationService
from marketplace.utils.logging import get_logger
from marketplace.utils.order_number import generate_order_number
from marketplace.utils.retry import collision_retry
from marketplace.utils.settings import (
    CHECKOUT_LOCK_TTL_SECONDS,
    DELIVERY_FEE,
    ORDER_NUMBER_MAX_ATTEMPTS,
    TAX_RATE,
)

logger = get_logger(__name__)

CENT = Decimal("0.01")


class _OrderNumberTaken(Exception):
    pass


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    product_name: str
    product_image: str
    quantity: int
    unit: str
    unit_price: Decimal
    line_total: Decimal
    seller_id: int


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal


def compute_totals(lines: list[PricedLine], delivery_fee: Decimal, tax_rate: Decimal) -> Totals:
    # tax is rounded once on the subtotal, half up to whole units
    subtotal = sum((line.line_total for line in lines), Decimal("0.00"))
    tax = (subtotal * tax_rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return Totals(
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        tax=tax,
        total=subtotal + delivery_fee + tax,
    )


class CheckoutService:
    """
    Turns the buyer's cart into an order.

    Everything is validated before anything is written. Stock is then
    decremented line by line with a conditional decrement; if one of them
    does not apply (another buyer got there first) or a write fails, the
    decrements already made are given back and the order is deleted.
    """

    def __init__(
        self,
        db: Session,
        catalog: CatalogStore,
        lock_service: LockService | None = None,
        notifier: NotificationService | None = None,
        order_number_generator: Callable[[], str] = generate_order_number,
        delivery_fee: Decimal = DELIVERY_FEE,
        tax_rate: Decimal = TAX_RATE,
        max_order_number_attempts: int = ORDER_NUMBER_MAX_ATTEMPTS,
        lock_ttl: int = CHECKOUT_LOCK_TTL_SECONDS,
    ):
        self.db = db
        self.catalog = catalog
        self.carts = CartService(db, catalog)
        self.orders = OrderRepo(db)
        self.users = UserRepo(db)
        self.lock_service = lock_service
        self.notifier = notifier or NotificationService()
        self.order_number_generator = order_number_generator
        self.delivery_fee = Decimal(delivery_fee)
        self.tax_rate = Decimal(tax_rate)
        self.max_order_number_attempts = max_order_number_attempts
        self.lock_ttl = lock_ttl

    def create_order_from_cart(self, buyer_id: int, checkout: CheckoutIn | dict) -> Result:
        """Ok(OrderModel) or Err(kind, message, details)."""
        return capture(self.checkout, buyer_id, checkout)

    def checkout(self, buyer_id: int, checkout: CheckoutIn | dict) -> OrderModel:
        payload = self._parse(checkout)

        token = uuid4().hex
        locked = self._acquire_lock(buyer_id, token)
        try:
            return self._checkout(buyer_id, payload)
        finally:
            if locked:
                self._release_lock(buyer_id, token)

    def _checkout(self, buyer_id: int, payload: CheckoutIn) -> OrderModel:
        logger.info(f"Checkout started for user {buyer_id}")

        # 1. cart
        cart = self.carts.repo.get_cart_by_user(buyer_id)
        items = self.carts.repo.get_cart_items(cart.id) if cart else []
        if not items:
            raise EmptyCart("Cart is empty", buyer_id=buyer_id)

        # 2-3. validate against the live catalog and price with live prices
        lines = self._price_lines(items)

        # 4. totals
        totals = compute_totals(lines, self.delivery_fee, self.tax_rate)

        # 5-7. order number, snapshot, persist
        buyer = self.users.get_user(buyer_id)
        sellers = self.users.get_users(line.seller_id for line in lines)

        def build(order_number: str) -> OrderModel:
            return OrderModel(
                order_number=order_number,
                buyer_id=buyer_id,
                buyer_name=(buyer.name.strip() if buyer else "") or "Unknown User",
                buyer_email=buyer.email if buyer else "",
                buyer_phone=buyer.phone if buyer else "",
                items=[
                    OrderItemModel(
                        product_id=line.product_id,
                        product_name=line.product_name,
                        product_image=line.product_image,
                        quantity=line.quantity,
                        unit=line.unit,
                        unit_price=line.unit_price,
                        line_total=line.line_total,
                        seller_id=line.seller_id,
                        seller_name=sellers[line.seller_id].name if line.seller_id in sellers else "Unknown Seller",
                    )
                    for line in lines
                ],
                subtotal=totals.subtotal,
                delivery_fee=totals.delivery_fee,
                tax=totals.tax,
                total=totals.total,
                status=OrderStatus.PENDING.value,
                payment_method=payload.payment_method.value,
                payment_status=PaymentStatus.PENDING.value,
                delivery_address=payload.delivery_address.model_dump(),
                delivery_date=payload.delivery_date,
                delivery_time_slot=payload.delivery_time_slot,
                delivery_instructions=payload.delivery_instructions,
                notes=payload.notes,
            )

        order = self._persist_order(build)
        order_number = order.order_number
        logger.info(f"Order {order_number} saved for user {buyer_id}, total {totals.total}")

        # 8-9. stock and cart, compensated as a unit
        applied: list[PricedLine] = []
        try:
            for line in lines:
                change = self.catalog.conditional_decrement_stock(line.product_id, line.quantity)
                if not change.applied:
                    raise InsufficientStock(
                        f'Only {change.current_stock} {line.unit} left for "{line.product_name}"',
                        product_id=line.product_id,
                        product_name=line.product_name,
                        requested=line.quantity,
                        available=change.current_stock,
                    )
                applied.append(line)

            self.carts.clear_cart(cart)
        except Exception as e:
            logger.warning(f"Checkout of order {order_number} failed, compensating: {e}")
            self._compensate(order, order_number, applied)
            if isinstance(e, MarketplaceError):
                raise
            if isinstance(e, (SQLAlchemyError, RequestException)):
                raise PersistenceError(
                    "Could not complete the checkout, no stock was taken",
                    order_number=order_number,
                ) from e
            raise

        # 10.
        self.db.refresh(order)
        self._notify(order, {line.seller_id for line in lines})
        logger.info(f"Checkout completed: order {order_number}")
        return order

    def _parse(self, checkout: CheckoutIn | dict) -> CheckoutIn:
        if isinstance(checkout, CheckoutIn):
            return checkout
        try:
            return CheckoutIn.model_validate(checkout)
        except SchemaError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            fields = ", ".join(err["field"] for err in errors)
            raise ValidationError(f"Invalid checkout data: {fields}", errors=errors) from None

    def _price_lines(self, items: list[CartItemModel]) -> list[PricedLine]:
        lines = []
        for item in items:
            try:
                product = self.catalog.get_product(item.product_id)
            except (SQLAlchemyError, RequestException) as e:
                raise PersistenceError(
                    "Could not read the catalog", product_id=item.product_id
                ) from e

            self._ensure_available(product, item)

            lines.append(
                PricedLine(
                    product_id=product.id,
                    product_name=product.name,
                    product_image=product.images[0] if product.images else "",
                    quantity=item.quantity,
                    unit=product.unit or "piece",
                    unit_price=product.price,
                    line_total=(product.price * item.quantity).quantize(CENT),
                    seller_id=product.seller_id,
                )
            )
        return lines

    @staticmethod
    def _ensure_available(product: CatalogProduct | None, item: CartItemModel) -> None:
        if product is None:
            raise ProductUnavailable(
                f"Product {item.product_id} in your cart no longer exists",
                product_id=item.product_id,
                requested=item.quantity,
                available=0,
            )
        if not product.is_available:
            raise ProductUnavailable(
                f'Product "{product.name}" is no longer available',
                product_id=product.id,
                product_name=product.name,
                requested=item.quantity,
                available=0,
            )
        if product.stock < item.quantity:
            raise ProductUnavailable(
                f'Only {product.stock} {product.unit} available for "{product.name}"',
                product_id=product.id,
                product_name=product.name,
                requested=item.quantity,
                available=product.stock,
            )

    def _persist_order(self, build: Callable[[str], OrderModel]) -> OrderModel:
        try:
            for attempt in collision_retry(_OrderNumberTaken, self.max_order_number_attempts):
                with attempt:
                    order = self._insert_order(build)
        except RetryError as e:
            raise OrderNumberExhausted(
                f"Could not allocate a unique order number after "
                f"{self.max_order_number_attempts} attempts, please try again",
                attempts=self.max_order_number_attempts,
            ) from e
        return order

    def _insert_order(self, build: Callable[[str], OrderModel]) -> OrderModel:
        number = self.order_number_generator()
        if self.orders.order_number_exists(number):
            logger.warning(f"Order number {number} already taken, regenerating")
            raise _OrderNumberTaken(number)

        try:
            return self.orders.create_order(build(number))
        except IntegrityError as e:
            self.orders.rollback()
            # lost the number to a concurrent checkout between check and insert
            if self.orders.order_number_exists(number):
                logger.warning(f"Order number {number} taken concurrently, regenerating")
                raise _OrderNumberTaken(number) from e
            raise PersistenceError("Could not save the order") from e
        except SQLAlchemyError as e:
            self.orders.rollback()
            raise PersistenceError("Could not save the order") from e

    def _compensate(self, order: OrderModel, order_number: str, applied: list[PricedLine]) -> None:
        self.db.rollback()

        for line in reversed(applied):
            try:
                self.catalog.increment_stock(line.product_id, line.quantity)
                logger.info(f"Restored {line.quantity} of product {line.product_id}")
            except Exception as e:
                # drop whatever the failed restore left pending in the session
                self.db.rollback()
                logger.error(
                    f"Compensation failed: {line.quantity} of product {line.product_id} "
                    f"not restored: {e}"
                )

        try:
            self.orders.delete_order(order)
            logger.info(f"Order {order_number} deleted")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Compensation failed: order {order_number} not deleted: {e}")

    def _acquire_lock(self, buyer_id: int, token: str) -> bool:
        if self.lock_service is None:
            return False
        try:
            acquired = self.lock_service.acquire_checkout_lock(buyer_id, token, self.lock_ttl)
        except redis.RedisError as e:
            raise PersistenceError("Checkout is temporarily unavailable") from e
        if not acquired:
            raise CheckoutInProgress(
                "Another checkout for this cart is in progress", buyer_id=buyer_id
            )
        return True

    def _release_lock(self, buyer_id: int, token: str) -> None:
        try:
            self.lock_service.release_checkout_lock(buyer_id, token)
        except redis.RedisError as e:
            # the key expires on its own
            logger.warning(f"Could not release checkout lock for user {buyer_id}: {e}")

    def _notify(self, order: OrderModel, seller_ids: set[int]) -> None:
        for user_id in [order.buyer_id, *sorted(seller_ids)]:
            self.notifier.send_order_notification(
                user_id, order.id, order.order_number, order.status
            )
