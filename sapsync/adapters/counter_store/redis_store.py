"""Redis-backed counter store shared across worker processes.

consume() runs as a single Lua script so the check-and-increment is atomic
for every process pointed at the same Redis instance. INCR keeps the key's
TTL, which keeps the window anchored on its first request.
"""

from __future__ import annotations

import logging

import redis

from sapsync.adapters.counter_store.base import AbstractCounterStore, RateLimitResult

logger = logging.getLogger(__name__)

# KEYS[1] counter key; ARGV[1] limit; ARGV[2] window in milliseconds.
# Returns {allowed, count, pttl_ms}.
CONSUME_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if not current then
    redis.call('SET', KEYS[1], 1, 'PX', ARGV[2])
    return {1, 1, tonumber(ARGV[2])}
end

current = tonumber(current)
if current >= tonumber(ARGV[1]) then
    return {0, current, redis.call('PTTL', KEYS[1])}
end

local count = redis.call('INCR', KEYS[1])
return {1, count, redis.call('PTTL', KEYS[1])}
"""


class RedisCounterStore(AbstractCounterStore):
    """Counter store on top of a redis-py client."""

    def __init__(self, redis_client: redis.Redis) -> None:
        """Initialize the store.

        Args:
            redis_client: Redis client instance (sync API).
        """
        self._redis = redis_client
        self._consume_script = self._redis.register_script(CONSUME_SCRIPT)

    @classmethod
    def from_url(cls, url: str) -> "RedisCounterStore":
        """Build a store from a redis:// URL."""

        return cls(redis.from_url(url))

    def get(self, key: str) -> int | None:
        value = self._redis.get(key)
        if value is None:
            return None
        return int(value)

    def set(self, key: str, value: int, ttl_seconds: float) -> None:
        self._redis.set(key, int(value), px=max(1, int(ttl_seconds * 1000)))

    def ttl(self, key: str) -> float | None:
        pttl = self._redis.pttl(key)
        # -2: key missing; -1: key without expiry (never written by this store)
        if pttl is None or pttl < 0:
            return None
        return pttl / 1000

    def delete(self, key: str) -> None:
        self._redis.delete(key)

    def consume(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        allowed, count, pttl_ms = self._consume_script(
            keys=[key],
            args=[limit, int(window_seconds * 1000)],
        )
        allowed = bool(int(allowed))
        count = int(count)

        if allowed:
            return RateLimitResult(
                allowed=True,
                limit=limit,
                count=count,
                remaining=max(0, limit - count),
                retry_after_seconds=None,
            )

        pttl_ms = int(pttl_ms)
        retry_after = -(-pttl_ms // 1000) if pttl_ms > 0 else 0
        logger.debug(
            "counter_store.redis_blocked",
            extra={"counter_key": key[-16:], "count": count, "pttl_ms": pttl_ms},
        )
        return RateLimitResult(
            allowed=False,
            limit=limit,
            count=count,
            remaining=0,
            retry_after_seconds=retry_after,
        )
