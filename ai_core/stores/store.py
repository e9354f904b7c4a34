"""TTL key-value store abstraction + in-memory implementation."""

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any


class TTLStore(ABC):
    """Expiring key-value store. An expired key reads as absent."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if absent or expired."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""
        ...

    @abstractmethod
    async def ttl(self, key: str) -> float | None:
        """Seconds until the key expires, or None if absent."""
        ...

    @abstractmethod
    async def incr(self, key: str, ttl_seconds: float, limit: int) -> tuple[bool, int]:
        """Atomically count one hit against a fixed window.

        An absent or expired key starts a new window ``{"count": 1,
        "window_start": now}`` expiring after ``ttl_seconds``. A live key
        below ``limit`` is incremented and keeps its original expiry. A
        live key at ``limit`` is left untouched.

        Returns ``(counted, count)`` where ``count`` is the value after
        the call.
        """
        ...

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``. Returns the count removed."""
        ...


class InMemoryTTLStore(TTLStore):
    """Process-local expiring dict. Expired entries are pruned on access."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[Any, float]] = {}

    def _live(self, key: str) -> tuple[Any, float] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if self._clock() >= entry[1]:
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> Any | None:
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            self._data.pop(key, None)
            return
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def ttl(self, key: str) -> float | None:
        entry = self._live(key)
        if entry is None:
            return None
        return max(0.0, entry[1] - self._clock())

    async def incr(self, key: str, ttl_seconds: float, limit: int) -> tuple[bool, int]:
        # No await between read and write, so this is atomic on the event loop
        entry = self._live(key)
        now = self._clock()
        if entry is None:
            if limit < 1 or ttl_seconds <= 0:
                return False, 0
            self._data[key] = ({"count": 1, "window_start": now}, now + ttl_seconds)
            return True, 1

        value, expires_at = entry
        count = int(value.get("count", 0))
        if count >= limit:
            return False, count
        self._data[key] = ({**value, "count": count + 1}, expires_at)
        return True, count + 1

    async def delete_prefix(self, prefix: str) -> int:
        keys = [k for k in self._data if k.startswith(prefix)]
        for k in keys:
            del self._data[k]
        return len(keys)

    def __len__(self) -> int:
        return len(self._data)
