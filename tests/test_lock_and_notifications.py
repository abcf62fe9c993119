import logging
from unittest.mock import MagicMock

import pytest
import redis

from marketplace.domain.errors import PersistenceError
from marketplace.services import notification_service
from marketplace.services.checkout_service import CheckoutService
from marketplace.services.lock_service import LockService
from marketplace.services.notification_service import (
    NotificationService,
    send_order_notification_task,
)

from tests.support import BUYER_ID, StubLock


def test_acquire_sets_key_only_if_missing_with_expiry():
    client = MagicMock()
    client.set.return_value = True

    assert LockService(client=client).acquire_checkout_lock(7, "tok", 30) is True

    client.set.assert_called_once_with(name="checkout:7:lock", value="tok", nx=True, ex=30)


def test_acquire_when_held_elsewhere():
    client = MagicMock()
    client.set.return_value = None

    assert LockService(client=client).acquire_checkout_lock(7, "tok", 30) is False


def test_release_compares_token():
    client = MagicMock()
    client.eval.return_value = 0
    lock = LockService(client=client)

    assert lock.release_checkout_lock(7, "not-mine") is False

    script, numkeys, key, token = client.eval.call_args.args
    assert "GET" in script and "DEL" in script
    assert (numkeys, key, token) == (1, "checkout:7:lock", "not-mine")


def test_redis_errors_are_retried():
    client = MagicMock()
    client.set.side_effect = [redis.ConnectionError("reset"), True]

    assert LockService(client=client).acquire_checkout_lock(7, "tok", 30) is True
    assert client.set.call_count == 2


def test_unreachable_redis_fails_checkout_before_any_write(db, catalog, cart_service, checkout_payload, make_product, stock_of, order_count, notifier):
    a = make_product("A", 10, 5)
    cart_service.add_item(BUYER_ID, a, 1)
    client = MagicMock()
    client.set.side_effect = redis.ConnectionError("down")
    service = CheckoutService(db, catalog, lock_service=LockService(client=client), notifier=notifier)

    with pytest.raises(PersistenceError):
        service.checkout(BUYER_ID, checkout_payload)

    assert stock_of(a) == 5
    assert order_count() == 0


class UnreleasableLock(StubLock):
    def release_checkout_lock(self, buyer_id, token):
        raise redis.ConnectionError("gone")


def test_failed_release_does_not_fail_checkout(db, catalog, cart_service, checkout_payload, make_product, notifier):
    a = make_product("A", 10, 5)
    cart_service.add_item(BUYER_ID, a, 1)
    service = CheckoutService(db, catalog, lock_service=UnreleasableLock(), notifier=notifier)

    order = service.checkout(BUYER_ID, checkout_payload)

    assert order.status == "pending"


def test_notification_dispatch_failure_is_logged(monkeypatch, caplog):
    task = MagicMock()
    task.delay.side_effect = ConnectionError("broker down")
    monkeypatch.setattr(notification_service, "send_order_notification_task", task)

    with caplog.at_level(logging.WARNING, logger="marketplace"):
        NotificationService().send_order_notification(1, 10, "TS2610190001", "pending")

    task.delay.assert_called_once_with(1, 10, "TS2610190001", "pending")
    assert "TS2610190001" in caplog.text


def test_notification_task_runs_eagerly():
    result = send_order_notification_task.delay(1, 10, "TS2610190001", "shipped")

    assert result.get() == {"user_id": 1, "order_id": 10, "status": "shipped", "sent": True}
