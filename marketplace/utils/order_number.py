# marketplace/utils/order_number.py
import secrets
from datetime import datetime, timezone

from marketplace.utils.settings import ORDER_NUMBER_PREFIX


def generate_order_number(now: datetime | None = None) -> str:
    """
    Human readable order number: prefix + YYMMDD + 6 random digits,
    e.g. TS261019004211. Uniqueness is guaranteed by the orders table index,
    not by this function.
    """
    now = now or datetime.now(timezone.utc)
    suffix = f"{secrets.randbelow(1_000_000):06d}"
    return f"{ORDER_NUMBER_PREFIX}{now:%y%m%d}{suffix}"
