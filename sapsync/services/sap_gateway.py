"""Rate-limited, logged calls into the SAP Service Layer client.

Every guarded call follows the same sequence: enforce the action's budget,
consult the circuit breaker, run the call, report the outcome to the breaker
and the sync log. Failures are logged and re-raised unchanged;
retrying is the caller's (or queue's) decision.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from sapsync.adapters.sap.base import AbstractSAPClient
from sapsync.core.errors import CircuitOpen, RateLimitExceeded
from sapsync.core.logging import sync_context
from sapsync.core.rate_limit import RateLimiter
from sapsync.core.sync_status import EntityType, LogLevel, SyncDirection
from sapsync.services.circuit_breaker import CircuitBreaker
from sapsync.services.sync_logger import SyncLogger

T = TypeVar("T")


class SAPCallGuard:
    """Wrap SAP client calls with rate limiting, a circuit breaker and sync logging."""

    def __init__(
        self,
        client: AbstractSAPClient,
        limiter: RateLimiter,
        sync_logger: SyncLogger,
        *,
        window_seconds: int = 60,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self._client = client
        self._limiter = limiter
        self._sync_logger = sync_logger
        self._breaker = breaker
        self._window_seconds = window_seconds

    @property
    def client(self) -> AbstractSAPClient:
        return self._client

    def call(
        self,
        action: str,
        max_requests: int,
        operation: Callable[[AbstractSAPClient], T],
        *,
        entity_type: EntityType | str = EntityType.API,
        entity_id: int | None = None,
        direction: SyncDirection | str = SyncDirection.WC_TO_SAP,
        client_address: str | None = None,
        request: Any = None,
    ) -> T:
        """Run operation against the SAP client under the action's budget.

        Args:
            action: Rate-limited action name, e.g. ``manual_sync``.
            max_requests: Budget for the action per window.
            operation: Callable receiving the client and performing the call.
            entity_type: Entity recorded on the sync log entry.
            entity_id: Optional WooCommerce entity id.
            direction: Sync direction recorded on the log entry.
            client_address: Caller address used for the rate limit identity.
            request: Request payload stored on the log entry.

        Raises:
            RateLimitExceeded: Budget used up; the client is not called.
            CircuitOpen: SAP is failing repeatedly; the client is not called.
            InvalidConfiguration: Non-positive budget or window.
            Exception: Whatever the operation raised, after it was logged.
        """

        with sync_context(sync_action=action, sync_entity=getattr(entity_type, "value", entity_type)):
            return self._guarded_call(
                action, max_requests, operation, entity_type, entity_id, direction, client_address, request
            )

    def _guarded_call(
        self,
        action: str,
        max_requests: int,
        operation: Callable[[AbstractSAPClient], T],
        entity_type: EntityType | str,
        entity_id: int | None,
        direction: SyncDirection | str,
        client_address: str | None,
        request: Any,
    ) -> T:
        try:
            self._limiter.enforce(
                action,
                max_requests,
                self._window_seconds,
                client_address=client_address,
            )
        except RateLimitExceeded as exc:
            self._sync_logger.log(
                entity_type, entity_id, direction, LogLevel.WARNING, exc.message, request=request
            )
            raise

        if self._breaker is not None:
            try:
                self._breaker.check()
            except CircuitOpen as exc:
                self._sync_logger.log(
                    entity_type, entity_id, direction, LogLevel.WARNING, exc.message, request=request
                )
                raise

        try:
            result = operation(self._client)
        except Exception as exc:
            if self._breaker is not None:
                self._breaker.record_failure()
            message = f"{action} failed: {exc}"
            last_error = self._client.get_last_error()
            self._sync_logger.log(
                entity_type,
                entity_id,
                direction,
                LogLevel.ERROR,
                message,
                request=request,
                response={"error": last_error} if last_error else None,
            )
            raise

        if self._breaker is not None:
            self._breaker.record_success()
        self._sync_logger.log(
            entity_type,
            entity_id,
            direction,
            LogLevel.SUCCESS,
            f"{action} succeeded",
            request=request,
            response=result,
        )
        return result

    def test_connection(self, max_requests: int, *, client_address: str | None = None) -> dict[str, Any]:
        """Rate-limited Service Layer connectivity check."""

        return self.call(
            "test_connection",
            max_requests,
            lambda client: client.test_connection(),
            entity_type=EntityType.SYSTEM,
            client_address=client_address,
        )
