from __future__ import annotations

import logging
from functools import wraps

import redis

from ..errors import StoreError

logger = logging.getLogger(__name__)


def _wrap_errors(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except redis.RedisError as exc:
            raise StoreError(f"redis {fn.__name__} failed: {exc}") from exc

    return wrapper


class RedisStore:
    """Redis-backed store. Redis expires keys itself, so `sweep()` does nothing."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        logger.info("Connecting to Redis at %s", url)
        return cls(redis.from_url(url, decode_responses=True))

    @_wrap_errors
    def get(self, key: str) -> str | None:
        return self._client.get(key)

    @_wrap_errors
    def set(self, key: str, value: str) -> None:
        self._client.set(key, value)

    @_wrap_errors
    def setex(self, key: str, seconds: int, value: str) -> None:
        self._client.setex(key, seconds, value)

    @_wrap_errors
    def delete(self, key: str) -> None:
        self._client.delete(key)

    @_wrap_errors
    def keys(self, pattern: str) -> list[str]:
        return list(self._client.scan_iter(match=pattern))

    @_wrap_errors
    def sadd(self, key: str, member: str) -> None:
        self._client.sadd(key, member)

    @_wrap_errors
    def srem(self, key: str, member: str) -> None:
        self._client.srem(key, member)

    @_wrap_errors
    def smembers(self, key: str) -> list[str]:
        return sorted(self._client.smembers(key))

    def sweep(self) -> int:
        return 0

    def close(self) -> None:
        self._client.close()
