from __future__ import annotations

import fnmatch
import logging
import time
from dataclasses import dataclass
from threading import RLock

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: str
    expires_at: float | None = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class MemoryStore:
    """Single-process store. Expiry is checked on read and by `sweep()`."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._lock = RLock()
        self._data: dict[str, _Entry] = {}
        self._sets: dict[str, set[str]] = {}

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._data[key]
                return None
            return entry.value

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = _Entry(value=value)

    def setex(self, key: str, seconds: int, value: str) -> None:
        with self._lock:
            self._data[key] = _Entry(value=value, expires_at=self._clock() + seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
            self._sets.pop(key, None)

    def keys(self, pattern: str) -> list[str]:
        with self._lock:
            now = self._clock()
            return [
                k for k, entry in self._data.items()
                if not entry.expired(now) and fnmatch.fnmatchcase(k, pattern)
            ]

    def sadd(self, key: str, member: str) -> None:
        with self._lock:
            self._sets.setdefault(key, set()).add(member)

    def srem(self, key: str, member: str) -> None:
        with self._lock:
            members = self._sets.get(key)
            if members is None:
                return
            members.discard(member)
            if not members:
                del self._sets[key]

    def smembers(self, key: str) -> list[str]:
        with self._lock:
            return sorted(self._sets.get(key, set()))

    def sweep(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._data.items() if entry.expired(now)]
            for k in expired:
                del self._data[k]
        if expired:
            logger.debug("Swept %d expired keys", len(expired))
        return len(expired)

    def stats(self) -> dict:
        with self._lock:
            return {"keysCount": len(self._data), "setsCount": len(self._sets)}

    def close(self) -> None:
        with self._lock:
            self._data.clear()
            self._sets.clear()
