"""
In-process cache with per-entry expiry.

Each data provider owns one store. Entries live for the process lifetime:
an expired entry reads as a miss but stays in memory until the same key is
written again. The working set of a single server process is small enough
that no other eviction is needed.
"""

from __future__ import annotations

import time
from typing import Any, Callable


class CacheStore:
    """Key -> value mapping where every entry expires ``ttl`` seconds after ``set``."""

    def __init__(
        self,
        default_ttl: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}  # key -> (value, expires_at)

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            return None
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if ttl is None:
            ttl = self.default_ttl
        self._entries[key] = (value, self._clock() + ttl)

    def __len__(self) -> int:
        return len(self._entries)
