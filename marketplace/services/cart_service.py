# marketplace/services/cart_service.py
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.data.models.cart import CartModel
from marketplace.data.models.cart_item import CartItemModel
from marketplace.domain.errors import InvalidQuantity, PersistenceError
from marketplace.domain.schemas import CartSummaryItem, CartSummaryOut
from marketplace.repos.cart_repo import CartRepo
from marketplace.repos.user_repo import UserRepo
from marketplace.services.catalog import CatalogStore
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Use cases for the buyer's cart.
    commands (add, update, remove, clear) change state and bump the cart version,
    queries (summary, count) only read.

    Quantities are not checked against stock here, checkout does that
    against the live catalog.
    """

    def __init__(self, db: Session, catalog: CatalogStore):
        self.repo = CartRepo(db)
        self.users = UserRepo(db)
        self.catalog = catalog

    #query
    def get_cart_summary(self, buyer_id: int) -> CartSummaryOut:
        cart = self.get_or_create_cart(buyer_id)
        return self._summarize(cart)

    def get_cart_count(self, buyer_id: int) -> int:
        cart = self.repo.get_cart_by_user(buyer_id)
        if not cart:
            return 0
        return sum(i.quantity for i in self.repo.get_cart_items(cart.id))

    #commands
    def get_or_create_cart(self, buyer_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(buyer_id)
        if cart:
            return cart

        try:
            created = self.repo.create_cart(CartModel(user_id=buyer_id, version=1))
        except IntegrityError as e:
            # another request created it first
            self.repo.rollback()
            cart = self.repo.get_cart_by_user(buyer_id)
            if cart is None:
                raise PersistenceError(
                    "Could not create the cart", buyer_id=buyer_id
                ) from e
            return cart

        logger.info(f"Created cart {created.id} for user {buyer_id}")
        return created

    def add_item(self, buyer_id: int, product_id: int, quantity: int) -> CartSummaryOut:
        if quantity < 1:
            raise InvalidQuantity("Quantity must be at least 1", quantity=quantity)

        cart = self.get_or_create_cart(buyer_id)

        def change():
            existing = self.repo.get_cart_item(cart.id, product_id)
            if existing:
                logger.info(
                    f"Product {product_id} already in cart {cart.id}, quantity "
                    f"{existing.quantity} -> {existing.quantity + quantity}"
                )
                existing.quantity += quantity
            else:
                logger.info(f"Adding product {product_id} to cart {cart.id}")
                self.repo.add_cart_item(
                    CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity)
                )

        self._apply(cart, change)
        return self._summarize(cart)

    def update_item(self, buyer_id: int, product_id: int, quantity: int) -> CartSummaryOut:
        if quantity <= 0:
            return self.remove_item(buyer_id, product_id)

        cart = self.get_or_create_cart(buyer_id)
        item = self.repo.get_cart_item(cart.id, product_id)
        if item is None:
            # nothing to update
            return self._summarize(cart)

        def change():
            item.quantity = quantity

        self._apply(cart, change)
        return self._summarize(cart)

    def remove_item(self, buyer_id: int, product_id: int) -> CartSummaryOut:
        cart = self.get_or_create_cart(buyer_id)
        if self.repo.get_cart_item(cart.id, product_id) is None:
            return self._summarize(cart)

        logger.info(f"Removing product {product_id} from cart {cart.id}")
        self._apply(cart, lambda: self.repo.delete_cart_item(cart.id, product_id))
        return self._summarize(cart)

    def clear(self, buyer_id: int) -> CartSummaryOut:
        cart = self.get_or_create_cart(buyer_id)
        self.clear_cart(cart)
        return self._summarize(cart)

    def clear_cart(self, cart: CartModel) -> None:
        """Empties the cart in place, the cart row stays."""
        self._apply(cart, lambda: self.repo.delete_cart_items(cart.id))
        logger.info(f"Cart {cart.id} cleared")

    def _apply(self, cart: CartModel, change) -> None:
        # optimistic locking on the version column
        # UPDATE carts SET version = 2 WHERE id = 1 AND version = 1
        old_version = cart.version
        try:
            change()
            rowcount = self.repo.update_cart_version(
                cart_id=cart.id,
                old_version=old_version,
                new_data={
                    "version": old_version + 1,
                    "updated_at": datetime.now(timezone.utc),
                },
            )
            if rowcount == 0:
                self.repo.rollback()
                raise PersistenceError(
                    "Cart was modified by another request, reload and try again",
                    cart_id=cart.id,
                )
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Cart {cart.id} update failed: {e}")
            raise PersistenceError("Could not save the cart", cart_id=cart.id) from e

    def _summarize(self, cart: CartModel) -> CartSummaryOut:
        items = self.repo.get_cart_items(cart.id)
        products = {i.product_id: self.catalog.get_product(i.product_id) for i in items}
        sellers = self.users.get_users(p.seller_id for p in products.values() if p)

        lines = []
        total_value = Decimal("0.00")
        for item in items:
            product = products[item.product_id]
            if product is None:
                lines.append(
                    CartSummaryItem(
                        product_id=item.product_id,
                        quantity=item.quantity,
                        available=False,
                        note="Product no longer exists",
                    )
                )
                continue

            line_total = product.price * item.quantity
            note = None
            if not product.is_available:
                note = f'"{product.name}" is no longer available'
            elif product.stock < item.quantity:
                note = f"Only {product.stock} {product.unit} available"
            available = note is None
            if available:
                total_value += line_total

            seller = sellers.get(product.seller_id)
            lines.append(
                CartSummaryItem(
                    product_id=product.id,
                    product_name=product.name,
                    product_image=product.images[0] if product.images else "",
                    quantity=item.quantity,
                    unit=product.unit,
                    price=product.price,
                    total=line_total,
                    seller_id=product.seller_id,
                    seller_name=seller.name if seller else "Unknown Seller",
                    stock=product.stock,
                    available=available,
                    note=note,
                )
            )

        return CartSummaryOut(
            cart_id=cart.id,
            user_id=cart.user_id,
            total_items=sum(i.quantity for i in items),
            total_value=total_value,
            items=lines,
            updated_at=cart.updated_at,
        )
