# marketplace/utils/retry.py
from tenacity import (
    Retrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import requests
import redis


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(requests.RequestException),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def collision_retry(exc_type: type[Exception], attempts: int) -> Retrying:
    """
    Regenerate-on-conflict loop, no backoff: a fresh value is all a retry needs.
    Raises tenacity.RetryError once the attempts are used up.
    """
    return Retrying(
        stop=stop_after_attempt(attempts),
        retry=retry_if_exception_type(exc_type),
    )
