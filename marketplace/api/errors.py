# marketplace/api/errors.py
from fastapi import HTTPException

from marketplace.domain.errors import ErrorKind, MarketplaceError
from marketplace.domain.result import Err, Result

STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.EMPTY_CART: 400,
    ErrorKind.PRODUCT_UNAVAILABLE: 400,
    ErrorKind.INSUFFICIENT_STOCK: 409,
    ErrorKind.ORDER_NUMBER_EXHAUSTED: 503,
    ErrorKind.INVALID_ACTOR: 403,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.ACCESS_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CHECKOUT_IN_PROGRESS: 409,
    ErrorKind.PERSISTENCE: 503,
}


def http_error(err: Err) -> HTTPException:
    return HTTPException(
        status_code=STATUS_CODES.get(err.kind, 400),
        detail={"kind": err.kind.value, "message": err.message, **err.details},
    )


def to_http(e: MarketplaceError) -> HTTPException:
    return http_error(Err.from_error(e))


def unwrap(result: Result):
    if isinstance(result, Err):
        raise http_error(result)
    return result.value
