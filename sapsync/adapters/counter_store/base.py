"""Counter store interface.

The rate limiter depends on this abstraction (not a concrete backend) so the
storage can be swapped without touching the window logic. The minimal
contract is ``get``/``set`` with per-key expiry plus ``ttl`` to read the
remaining lifetime of a window.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        count: Requests counted in the current window after this call.
        remaining: Remaining requests in the current window (0 when blocked).
        retry_after_seconds: Seconds until the window expires when blocked.
    """

    allowed: bool
    limit: int
    count: int
    remaining: int
    retry_after_seconds: int | None


class AbstractCounterStore(ABC):
    """Key/value store of integer counters with per-key expiry."""

    @abstractmethod
    def get(self, key: str) -> int | None:
        """Return the counter for key, or None when absent or expired."""
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: int, ttl_seconds: float) -> None:
        """Store value under key, expiring after ttl_seconds."""
        raise NotImplementedError

    @abstractmethod
    def ttl(self, key: str) -> float | None:
        """Return the remaining lifetime of key in seconds, or None when absent."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key; a missing key is not an error."""
        raise NotImplementedError

    def consume(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        """Count one request against key within a fixed window.

        The first request of a window creates the counter with a TTL of
        ``window_seconds``. Later requests increment it while keeping the
        remaining TTL, so the window stays anchored on the first request.
        Blocked requests leave the counter untouched.

        This generic version is a read-then-write sequence: two concurrent
        callers may both read the same count and over-allow by one. Stores
        with an atomic primitive override it.

        Args:
            key: Fully namespaced counter key.
            limit: Max requests per window.
            window_seconds: Window length in seconds.

        Returns:
            RateLimitResult describing the decision.
        """

        current = self.get(key)
        if current is None:
            self.set(key, 1, window_seconds)
            return _allowed(limit, 1)

        if current >= limit:
            return _blocked(limit, current, self.ttl(key))

        remaining_ttl = self.ttl(key)
        if remaining_ttl is None or remaining_ttl <= 0:
            # Expired between get and ttl: this request opens a new window.
            self.set(key, 1, window_seconds)
            return _allowed(limit, 1)

        self.set(key, current + 1, remaining_ttl)
        return _allowed(limit, current + 1)


def _allowed(limit: int, count: int) -> RateLimitResult:
    return RateLimitResult(
        allowed=True,
        limit=limit,
        count=count,
        remaining=max(0, limit - count),
        retry_after_seconds=None,
    )


def _blocked(limit: int, count: int, remaining_ttl: float | None) -> RateLimitResult:
    retry_after = max(0, int(math.ceil(remaining_ttl))) if remaining_ttl else 0
    return RateLimitResult(
        allowed=False,
        limit=limit,
        count=count,
        remaining=0,
        retry_after_seconds=retry_after,
    )
