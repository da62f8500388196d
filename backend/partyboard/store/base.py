from __future__ import annotations

from typing import Protocol


class KeyValueStore(Protocol):
    """String key-value store with per-key expiry and string sets."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def setex(self, key: str, seconds: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, pattern: str) -> list[str]: ...

    def sadd(self, key: str, member: str) -> None: ...

    def srem(self, key: str, member: str) -> None: ...

    def smembers(self, key: str) -> list[str]: ...

    def sweep(self) -> int: ...

    def close(self) -> None: ...
