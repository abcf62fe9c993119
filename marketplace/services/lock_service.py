import redis

from marketplace.utils.retry import redis_retry
from marketplace.utils.settings import REDIS_URL
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

#LUA compare and delete, atomic
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis runs the script as one uninterruptible operation
#nobody can slip in between GET and DEL, so only the owner token deletes the key


class LockService:
    """
    -per-buyer checkout lock, one checkout per cart at a time
    -release only by the token that acquired it (lua)
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _key(buyer_id: int) -> str:
        return f"checkout:{buyer_id}:lock"

    @redis_retry()
    def acquire_checkout_lock(self, buyer_id: int, token: str, ttl: int) -> bool:
        key = self._key(buyer_id)
        logger.info(f"Acquire lock {key}")
        #SET checkout:7:lock "<token>" NX EX 30
        #NX: only if missing, EX: expires by itself if the request dies
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl))

    @redis_retry()
    def release_checkout_lock(self, buyer_id: int, token: str) -> bool:
        key = self._key(buyer_id)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
