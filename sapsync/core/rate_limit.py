"""Fixed-window rate limiting for guarded sync operations.

Design goals:
- No in-process state: the counter lives in an injected store, so several
  workers sharing one store share one budget.
- Swap-friendly: the identity strategy and the store are collaborators.
- Safe defaults: non-positive budgets never allow a request.

Rate limiting strategy:
- One counter per (action, client identity) pair.
- The window is anchored on the first request and expires with the counter
  TTL; increments do not extend it.
"""

from __future__ import annotations

import hashlib
import ipaddress
import logging
from typing import Callable, Mapping, Protocol

from fastapi import Request, Response

from sapsync.adapters.counter_store.base import AbstractCounterStore, RateLimitResult
from sapsync.adapters.counter_store.in_memory import InMemoryCounterStore
from sapsync.adapters.counter_store.redis_store import RedisCounterStore
from sapsync.core.config import settings
from sapsync.core.errors import InvalidConfiguration, RateLimitExceeded

logger = logging.getLogger(__name__)

LOOPBACK_IDENTITY = "127.0.0.1"
KEY_SEPARATOR = "\x1f"


def _valid_ip(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


class ClientIdentityResolver(Protocol):
    def resolve(self, client_address: str | None, headers: Mapping[str, str] | None = None) -> str:
        ...


class RemoteAddressResolver:
    """Use the direct peer address, falling back to loopback.

    Development-only default: a missing or malformed address collapses onto
    a single shared identity, and proxy headers are never consulted, so
    behind a reverse proxy every client shares the proxy's budget.
    """

    def resolve(self, client_address: str | None, headers: Mapping[str, str] | None = None) -> str:
        identity = _valid_ip(client_address)
        if identity is None:
            logger.warning(
                "rate_limit.identity_fallback",
                extra={"reason": "missing_or_invalid_address", "identity": LOOPBACK_IDENTITY},
            )
            return LOOPBACK_IDENTITY
        return identity


class ForwardedForResolver:
    """Honour X-Forwarded-For only when the direct peer is a trusted proxy."""

    def __init__(self, trusted_proxies: set[str], fallback: ClientIdentityResolver | None = None) -> None:
        self._trusted = {ip for ip in (_valid_ip(p) for p in trusted_proxies) if ip}
        self._fallback = fallback or RemoteAddressResolver()

    def resolve(self, client_address: str | None, headers: Mapping[str, str] | None = None) -> str:
        peer = _valid_ip(client_address)
        if peer in self._trusted and headers:
            forwarded = headers.get("x-forwarded-for") or headers.get("X-Forwarded-For")
            if forwarded:
                origin = _valid_ip(forwarded.split(",")[0])
                if origin:
                    return origin
        return self._fallback.resolve(client_address, headers)


def build_rate_limit_key(action: str, client_identity: str, *, prefix: str = "sapsync:rate") -> str:
    """Build the namespaced counter key for an (action, identity) pair.

    The two parts are joined with a unit separator, which occurs in neither
    action names nor IP addresses, so ("sync", "11.2.3.4") and
    ("sync1", "1.2.3.4") never share a counter.

    Returns:
        str: ``{prefix}:{sha256(action + "\\x1f" + identity)}``.
    """

    digest = hashlib.sha256(f"{action}{KEY_SEPARATOR}{client_identity}".encode()).hexdigest()
    return f"{prefix}:{digest}"


class RateLimiter:
    """Gate named actions per client within a fixed window."""

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        identity_resolver: ClientIdentityResolver | None = None,
        key_prefix: str = "sapsync:rate",
    ) -> None:
        self._store = store
        self._identity_resolver = identity_resolver or RemoteAddressResolver()
        self._key_prefix = key_prefix

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    def enforce(
        self,
        action: str,
        max_requests: int,
        window_seconds: int = 60,
        *,
        client_address: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RateLimitResult:
        """Count one request for action and raise when over budget.

        Args:
            action: Identifier of the guarded operation.
            max_requests: Max requests per window for one client.
            window_seconds: Window length in seconds.
            client_address: Caller network address (may be missing/malformed).
            headers: Request headers, used by proxy-aware identity resolvers.

        Returns:
            RateLimitResult for the allowed request.

        Raises:
            InvalidConfiguration: If max_requests or window_seconds is not positive.
            RateLimitExceeded: If the client already used its budget in this window.
        """

        if max_requests <= 0 or window_seconds <= 0:
            raise InvalidConfiguration(
                code="invalid_rate_limit",
                message="max_requests and window_seconds must be positive",
                details={
                    "action": action,
                    "max_requests": max_requests,
                    "window_seconds": window_seconds,
                },
            )

        identity = self._identity_resolver.resolve(client_address, headers)
        key = build_rate_limit_key(action, identity, prefix=self._key_prefix)

        result = self._store.consume(key, max_requests, window_seconds)
        if result.allowed:
            return result

        raise RateLimitExceeded(
            action=action,
            max_requests=max_requests,
            window_seconds=window_seconds,
            retry_after=result.retry_after_seconds,
        )


def build_identity_resolver() -> ClientIdentityResolver:
    """Build the identity resolver selected in settings."""

    strategy = settings.app.identity_strategy.lower()
    if strategy == "forwarded_for":
        proxies = {p.strip() for p in (settings.app.trusted_proxies or "").split(",") if p.strip()}
        return ForwardedForResolver(proxies)
    if strategy == "remote_addr":
        return RemoteAddressResolver()
    raise InvalidConfiguration(
        code="unknown_identity_strategy",
        message=f"Unknown identity strategy: '{strategy}'. Supported: remote_addr, forwarded_for",
    )


def build_counter_store() -> AbstractCounterStore:
    """Build the counter store backend selected in settings."""

    backend = settings.app.counter_store.lower()
    if backend == "memory":
        return InMemoryCounterStore()
    if backend == "redis":
        return RedisCounterStore.from_url(settings.app.redis_url)
    raise InvalidConfiguration(
        code="unknown_counter_store",
        message=f"Unknown counter store: '{backend}'. Supported: memory, redis",
    )


_limiter: RateLimiter | None = None
_limiter_config: tuple[str, str, str | None, str, str] | None = None


def get_rate_limiter() -> RateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the limiter is rebuilt.
    """

    global _limiter, _limiter_config

    config = (
        settings.app.counter_store,
        settings.app.identity_strategy,
        settings.app.trusted_proxies,
        settings.app.rate_limit_key_prefix,
        settings.app.redis_url,
    )

    if _limiter is None or _limiter_config != config:
        _limiter = RateLimiter(
            build_counter_store(),
            identity_resolver=build_identity_resolver(),
            key_prefix=settings.app.rate_limit_key_prefix,
        )
        _limiter_config = config

    return _limiter


def _hash_identity(identity: str | None) -> str:
    """Hash the client address for logging without exposing it."""
    return hashlib.sha256((identity or "").encode()).hexdigest()[:16]


def rate_limited(action: str) -> Callable[..., object]:
    """Build a FastAPI dependency enforcing the configured budget for action.

    Usage:
        @router.post("/sync", dependencies=[Depends(rate_limited("manual_sync"))])
    """

    async def enforce_rate_limit(request: Request, response: Response) -> None:
        if not settings.app.rate_limit_enabled:
            return

        max_requests = settings.rate_limit.budget_for(action)
        window_seconds = settings.rate_limit.window_seconds
        client_address = request.client.host if request.client else None
        key_hash = _hash_identity(client_address)

        try:
            result = get_rate_limiter().enforce(
                action,
                max_requests,
                window_seconds,
                client_address=client_address,
                headers=request.headers,
            )
        except RateLimitExceeded as exc:
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "action": action,
                    "key_hash": key_hash,
                    "limit": max_requests,
                    "window_s": window_seconds,
                    "retry_after_s": exc.retry_after or 0,
                },
            )
            raise

        logger.info(
            "rate_limit.allowed",
            extra={
                "action": action,
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
                "window_s": window_seconds,
            },
        )
        if settings.app.rate_limit_include_headers:
            response.headers["X-RateLimit-Limit"] = str(result.limit)
            response.headers["X-RateLimit-Remaining"] = str(result.remaining)

    enforce_rate_limit.__name__ = f"enforce_rate_limit_{action}"
    return enforce_rate_limit
