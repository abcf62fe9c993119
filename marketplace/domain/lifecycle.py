# marketplace/domain/lifecycle.py
"""
Order status state machine.

Pure rules only: which statuses exist, who may request which one, and which
moves are allowed. OrderService applies the side effects (timestamps, stock
restoration, payment status).
"""
from enum import Enum

from marketplace.domain.errors import InvalidActor, InvalidTransition, ValidationError


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    RECEIVED = "received"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    COD = "cod"
    BANK_TRANSFER = "bank_transfer"
    ESEWA = "esewa"
    KHALTI = "khalti"


class Role(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


# (from, to) -> role allowed to request the move
TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], Role] = {
    (OrderStatus.PENDING, OrderStatus.CONFIRMED): Role.SELLER,
    (OrderStatus.PENDING, OrderStatus.REJECTED): Role.SELLER,
    (OrderStatus.PENDING, OrderStatus.CANCELLED): Role.BUYER,
    (OrderStatus.CONFIRMED, OrderStatus.PROCESSING): Role.SELLER,
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED): Role.BUYER,
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED): Role.SELLER,
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED): Role.SELLER,
    (OrderStatus.DELIVERED, OrderStatus.RECEIVED): Role.BUYER,
}

REQUESTABLE_BY: dict[Role, frozenset[OrderStatus]] = {
    role: frozenset(to for (_, to), r in TRANSITIONS.items() if r is role)
    for role in Role
}

# statuses that undo the checkout stock decrement
CANCELLATION_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REJECTED})

TERMINAL_STATUSES = frozenset(
    {OrderStatus.RECEIVED, OrderStatus.CANCELLED, OrderStatus.REJECTED}
)

TIMESTAMP_FIELDS: dict[OrderStatus, str] = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.PROCESSING: "processed_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.RECEIVED: "received_at",
    OrderStatus.CANCELLED: "cancelled_at",
    OrderStatus.REJECTED: "cancelled_at",
}

_ALIASES = {"approved": OrderStatus.CONFIRMED}


def parse_status(value: str | OrderStatus) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    key = str(value).strip().lower()
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return OrderStatus(key)
    except ValueError:
        raise ValidationError(f'Unknown order status "{value}"', status=value) from None


def allowed_next(current: OrderStatus) -> list[OrderStatus]:
    return [to for (frm, to) in TRANSITIONS if frm is current]


def check_transition(current: OrderStatus, requested: OrderStatus, role: Role) -> bool:
    """
    Validates a requested move for the given role.

    Returns False when the order already has the requested status (the
    request is a no-op), True when the move should be applied.
    Raises InvalidActor or InvalidTransition otherwise.
    """
    reachable = any(to is requested for (_, to) in TRANSITIONS)
    if reachable and requested not in REQUESTABLE_BY[role]:
        raise InvalidActor(
            f'A {role.value} cannot set an order to "{requested.value}"',
            role=role.value,
            requested_status=requested.value,
        )

    if current is requested:
        return False

    if (current, requested) not in TRANSITIONS:
        raise InvalidTransition(
            f'Cannot move order from "{current.value}" to "{requested.value}"',
            current_status=current.value,
            requested_status=requested.value,
            allowed=[s.value for s in allowed_next(current)],
        )
    return True
