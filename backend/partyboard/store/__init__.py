from __future__ import annotations

from .base import KeyValueStore
from .memory import MemoryStore
from .redis_store import RedisStore


def create_store(redis_url: str = "") -> KeyValueStore:
    if redis_url:
        return RedisStore.from_url(redis_url)
    return MemoryStore()


__all__ = ["KeyValueStore", "MemoryStore", "RedisStore", "create_store"]
