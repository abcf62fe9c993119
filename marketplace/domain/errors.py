# marketplace/domain/errors.py
"""
Domain errors for the cart, checkout and order lifecycle.

Services raise these; the checkout and transition use cases turn them into
Err results, and the routers translate those into HTTP responses.
"""
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    EMPTY_CART = "empty_cart"
    PRODUCT_UNAVAILABLE = "product_unavailable"
    INSUFFICIENT_STOCK = "insufficient_stock"
    ORDER_NUMBER_EXHAUSTED = "order_number_exhausted"
    INVALID_ACTOR = "invalid_actor"
    INVALID_TRANSITION = "invalid_transition"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    CHECKOUT_IN_PROGRESS = "checkout_in_progress"
    PERSISTENCE = "persistence_error"


# kinds after which the caller may start over with a fresh cart read
RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.INSUFFICIENT_STOCK,
        ErrorKind.ORDER_NUMBER_EXHAUSTED,
        ErrorKind.CHECKOUT_IN_PROGRESS,
        ErrorKind.PERSISTENCE,
    }
)


class MarketplaceError(Exception):
    kind: ErrorKind = ErrorKind.PERSISTENCE

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


class ValidationError(MarketplaceError):
    kind = ErrorKind.VALIDATION


class InvalidQuantity(ValidationError):
    pass


class EmptyCart(MarketplaceError):
    kind = ErrorKind.EMPTY_CART


class ProductUnavailable(MarketplaceError):
    """Missing, inactive or short on stock when checkout validated the cart."""

    kind = ErrorKind.PRODUCT_UNAVAILABLE


class InsufficientStock(MarketplaceError):
    """Lost the race: the conditional decrement did not apply."""

    kind = ErrorKind.INSUFFICIENT_STOCK


class OrderNumberExhausted(MarketplaceError):
    kind = ErrorKind.ORDER_NUMBER_EXHAUSTED


class InvalidActor(MarketplaceError):
    kind = ErrorKind.INVALID_ACTOR


class InvalidTransition(MarketplaceError):
    kind = ErrorKind.INVALID_TRANSITION


class AccessDenied(MarketplaceError):
    kind = ErrorKind.ACCESS_DENIED


class OrderNotFound(MarketplaceError):
    kind = ErrorKind.NOT_FOUND


class UserNotFound(MarketplaceError):
    kind = ErrorKind.NOT_FOUND


class CheckoutInProgress(MarketplaceError):
    kind = ErrorKind.CHECKOUT_IN_PROGRESS


class PersistenceError(MarketplaceError):
    kind = ErrorKind.PERSISTENCE
