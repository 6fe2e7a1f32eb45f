"""Time-based cache with an injectable clock."""

import time
from typing import Callable, Generic, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """
    Key/value cache whose entries expire after a per-entry time to live.

    The clock is a zero-argument callable returning seconds, defaulting to
    time.monotonic; tests pass a fake clock to control expiry.

    Example:
        >>> now = [0.0]
        >>> cache = TTLCache(clock=lambda: now[0])
        >>> cache.put("AAPL", 180, ttl=60)
        >>> cache.get("AAPL")
        180
        >>> now[0] = 61.0
        >>> cache.get("AAPL") is None
        True
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[V, float]] = {}

    def get(self, key: str) -> V | None:
        """Return the cached value, or None when missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: V, ttl: float) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self._entries[key] = (value, self._clock() + ttl)

    def invalidate(self, key: str | None = None) -> None:
        """Drop one entry, or every entry when key is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
