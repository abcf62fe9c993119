# marketplace/services/order_service.py
import math
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.data.models.order import OrderModel
from marketplace.data.models.user import UserModel
from marketplace.domain.errors import (
    AccessDenied,
    InvalidTransition,
    OrderNotFound,
    PersistenceError,
    UserNotFound,
    ValidationError,
)
from marketplace.domain.lifecycle import (
    CANCELLATION_STATUSES,
    REQUESTABLE_BY,
    TIMESTAMP_FIELDS,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Role,
    check_transition,
    parse_status,
)
from marketplace.domain.result import Result, capture
from marketplace.domain.schemas import OrderListOut, OrderOut, OrderStatsOut, Pagination
from marketplace.repos.order_repo import OrderRepo
from marketplace.repos.user_repo import UserRepo
from marketplace.services.catalog import CatalogStore
from marketplace.services.notification_service import NotificationService
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


class OrderService:
    """
    Order lifecycle and order queries.
    Checkout lives in CheckoutService, this service only moves existing orders.
    """

    def __init__(
        self,
        db: Session,
        catalog: CatalogStore,
        notifier: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.users = UserRepo(db)
        self.catalog = catalog
        self.notifier = notifier or NotificationService()

    def transition_order(
        self,
        order_id: int,
        requested_status: str,
        actor_id: int,
        reason: str | None = None,
    ) -> Result:
        """Ok(OrderModel) or Err(kind, message, details)."""
        return capture(self.apply_transition, order_id, requested_status, actor_id, reason)

    def apply_transition(
        self,
        order_id: int,
        requested_status: str | OrderStatus,
        actor_id: int,
        reason: str | None = None,
    ) -> OrderModel:
        """
        Use Case: move an order to a new status.

        1. role and ownership checks, transition table
        2. conditional update on the order version, so a concurrent request
           cannot apply the same move twice
        3. side effects: timestamps, payment status, stock restoration
        """
        requested = parse_status(requested_status)
        order = self._get_order(order_id)
        self._get_user(actor_id)
        role = self._role_on_order(order, actor_id, requested)

        current = OrderStatus(order.status)
        if not check_transition(current, requested, role):
            logger.info(f"Order {order.order_number} already {requested.value}, nothing to do")
            return order

        now = datetime.now(timezone.utc)
        changes = {
            "status": requested.value,
            "version": order.version + 1,
            "updated_at": now,
            TIMESTAMP_FIELDS[requested]: now,
        }

        if requested in CANCELLATION_STATUSES:
            changes["cancellation_reason"] = reason
            if order.payment_status == PaymentStatus.PAID.value:
                changes["payment_status"] = PaymentStatus.REFUNDED.value

        if requested is OrderStatus.DELIVERED and order.payment_method == PaymentMethod.COD.value:
            # cash collected on delivery
            changes["payment_status"] = PaymentStatus.PAID.value
            changes["paid_at"] = now

        lines = [(i.product_id, i.quantity) for i in order.items]

        try:
            rowcount = self.repo.update_order_version(order.id, order.version, changes)
            if rowcount == 0:
                self.repo.rollback()
                return self._resolve_conflict(order_id, requested)
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            raise PersistenceError(
                "Could not update the order", order_id=order_id
            ) from e

        self.db.refresh(order)
        logger.info(
            f"Order {order.order_number}: {current.value} -> {requested.value} by {role.value} {actor_id}"
        )

        if requested in CANCELLATION_STATUSES:
            self._restore_stock(order.order_number, lines)

        self.notifier.send_order_notification(
            order.buyer_id, order.id, order.order_number, order.status
        )
        return order

    def _resolve_conflict(self, order_id: int, requested: OrderStatus) -> OrderModel:
        # someone else moved the order between our read and our write
        order = self.db.get(OrderModel, order_id, populate_existing=True)
        if order is not None and order.status == requested.value:
            logger.info(f"Order {order.order_number} was set to {requested.value} concurrently")
            return order

        current = order.status if order is not None else None
        raise InvalidTransition(
            "Order was changed by another request, reload it and try again",
            current_status=current,
            requested_status=requested.value,
        )

    def _restore_stock(self, order_number: str, lines: list[tuple[int, int]]) -> None:
        # the cancellation itself is committed at this point and must not fail
        for product_id, quantity in lines:
            try:
                restored = self.catalog.increment_stock(product_id, quantity)
            except Exception as e:
                logger.error(
                    f"Order {order_number}: could not restore {quantity} of product {product_id}: {e}"
                )
                continue
            if not restored:
                logger.warning(
                    f"Order {order_number}: product {product_id} no longer exists, stock not restored"
                )

    @staticmethod
    def _role_on_order(order: OrderModel, user_id: int, requested: OrderStatus) -> Role:
        """
        The role comes from the user's relation to this order, not from the
        account: a seller who placed the order acts as its buyer.
        Someone who is both buyer and seller of the order gets the role that
        may request the status.
        """
        roles = []
        if order.buyer_id == user_id:
            roles.append(Role.BUYER)
        if any(i.seller_id == user_id for i in order.items):
            roles.append(Role.SELLER)
        if not roles:
            raise AccessDenied("Access denied", order_id=order.id, user_id=user_id)

        for role in roles:
            if requested in REQUESTABLE_BY[role]:
                return role
        return roles[0]

    def _get_order(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound("Order not found", order_id=order_id)
        return order

    def _get_user(self, user_id: int) -> UserModel:
        user = self.users.get_user(user_id)
        if not user:
            raise UserNotFound("User not found", user_id=user_id)
        return user

    @staticmethod
    def _role_of(user: UserModel) -> Role:
        try:
            return Role(user.role)
        except ValueError:
            raise ValidationError(f'Unknown role "{user.role}"', user_id=user.id) from None

    #queries
    def get_order(self, order_id: int, user_id: int) -> OrderModel:
        """
        Use Case: order details, visible to its buyer and to the sellers of its items.
        """
        order = self._get_order(order_id)

        is_buyer = order.buyer_id == user_id
        is_seller = any(i.seller_id == user_id for i in order.items)
        if not (is_buyer or is_seller):
            raise AccessDenied("Access denied", order_id=order_id, user_id=user_id)

        return order

    def list_buyer_orders(self, user_id: int, page: int = 1, limit: int = 10, status: str | None = None) -> OrderListOut:
        return self._list(user_id, False, page, limit, status)

    def list_seller_orders(self, user_id: int, page: int = 1, limit: int = 10, status: str | None = None) -> OrderListOut:
        return self._list(user_id, True, page, limit, status)

    def _list(self, user_id: int, as_seller: bool, page: int, limit: int, status: str | None) -> OrderListOut:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        status_value = parse_status(status).value if status else None

        orders, total = self.repo.list_orders(
            user_id,
            as_seller=as_seller,
            status=status_value,
            offset=(page - 1) * limit,
            limit=limit,
        )

        return OrderListOut(
            orders=[OrderOut.model_validate(o) for o in orders],
            pagination=Pagination(
                current=page,
                pages=math.ceil(total / limit),
                total=total,
                limit=limit,
            ),
        )

    def get_order_stats(self, user_id: int) -> OrderStatsOut:
        user = self._get_user(user_id)
        as_seller = self._role_of(user) is Role.SELLER

        revenue = self.repo.sum_totals(
            user_id,
            as_seller=as_seller,
            statuses=[OrderStatus.DELIVERED.value, OrderStatus.RECEIVED.value],
        )
        return OrderStatsOut(
            total_orders=self.repo.count_orders(user_id, as_seller=as_seller),
            pending_orders=self.repo.count_orders(
                user_id, as_seller=as_seller, statuses=[OrderStatus.PENDING.value]
            ),
            completed_orders=self.repo.count_orders(
                user_id, as_seller=as_seller, statuses=[OrderStatus.DELIVERED.value]
            ),
            total_revenue=revenue.quantize(Decimal("0.01")),
        )
