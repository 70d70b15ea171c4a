"""In-memory counter store with per-key expiry.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, which also makes consume()
  atomic within the process.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from sapsync.adapters.counter_store.base import AbstractCounterStore, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class _CounterItem:
    value: int
    expires_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping entries in a dict guarded by a lock.

    Expired entries are purged lazily on access, and in bulk whenever a new
    entry is written.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._items: dict[str, _CounterItem] = {}

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired_locked()
            return len(self._items)

    def get(self, key: str) -> int | None:
        with self._lock:
            item = self._live_item_locked(key)
            return item.value if item else None

    def set(self, key: str, value: int, ttl_seconds: float) -> None:
        with self._lock:
            self._evict_expired_locked()
            self._items[key] = _CounterItem(
                value=int(value),
                expires_at=self._clock() + ttl_seconds,
            )

    def ttl(self, key: str) -> float | None:
        with self._lock:
            item = self._live_item_locked(key)
            if item is None:
                return None
            return item.expires_at - self._clock()

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def consume(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        with self._lock:
            return super().consume(key, limit, window_seconds)

    def clear(self) -> None:
        """Remove all counters."""

        with self._lock:
            self._items.clear()

    def _live_item_locked(self, key: str) -> _CounterItem | None:
        item = self._items.get(key)
        if item is None:
            return None
        if item.expires_at <= self._clock():
            self._items.pop(key, None)
            logger.debug("counter_store.expired", extra={"counter_key": key[-16:]})
            return None
        return item

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        expired_keys = [k for k, item in self._items.items() if item.expires_at <= now]
        for key in expired_keys:
            self._items.pop(key, None)
