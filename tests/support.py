"""Ids and test doubles shared by the test modules."""

BUYER_ID = 1
SELLER_ID = 2
OTHER_SELLER_ID = 3
OTHER_BUYER_ID = 4


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send_order_notification(self, user_id, order_id, order_number, status):
        self.sent.append((user_id, order_number, status))


class StubLock:
    def __init__(self, free=True):
        self.free = free
        self.acquired = []
        self.released = []

    def acquire_checkout_lock(self, buyer_id, token, ttl):
        if not self.free:
            return False
        self.acquired.append((buyer_id, token, ttl))
        return True

    def release_checkout_lock(self, buyer_id, token):
        self.released.append((buyer_id, token))
        return True
