"""Circuit breaker in front of the SAP Service Layer.

State lives in the counter store, so every worker sharing a Redis counter
store sees the same circuit:

- ``{prefix}:failures``: failures in the current window (TTL = failure_window)
- ``{prefix}:open``: present while the circuit is open (TTL = cooldown)
- ``{prefix}:tripped``: present from the moment the circuit opens until a
  success closes it; tripped without open means half-open
- ``{prefix}:trial``: the single request allowed through while half-open
- ``{prefix}:last_failure``: UNIX time of the most recent failure
"""

from __future__ import annotations

import logging
import math
import sys
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from sapsync.adapters.counter_store.base import AbstractCounterStore
from sapsync.core.errors import CircuitOpen

logger = logging.getLogger(__name__)

# Upper bound for how long a tripped circuit waits for a closing success.
TRIPPED_TTL_SECONDS = 86_400


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        failure_threshold: int = 5,
        failure_window: int = 60,
        cooldown: int = 30,
        key_prefix: str = "sapsync:circuit",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if failure_threshold < 1 or failure_window < 1 or cooldown < 1:
            raise ValueError("failure_threshold, failure_window and cooldown must be >= 1")

        self._store = store
        self._failure_threshold = failure_threshold
        self._failure_window = failure_window
        self._cooldown = cooldown
        self._clock = clock
        self._failures_key = f"{key_prefix}:failures"
        self._open_key = f"{key_prefix}:open"
        self._tripped_key = f"{key_prefix}:tripped"
        self._trial_key = f"{key_prefix}:trial"
        self._last_failure_key = f"{key_prefix}:last_failure"

    @property
    def state(self) -> CircuitState:
        if self._store.get(self._open_key) is not None:
            return CircuitState.OPEN
        if self._store.get(self._tripped_key) is not None:
            return CircuitState.HALF_OPEN
        return CircuitState.CLOSED

    def _retry_after(self, key: str) -> int:
        remaining = self._store.ttl(key)
        return max(1, math.ceil(remaining)) if remaining else 1

    def check(self) -> None:
        """Allow the call through or raise CircuitOpen.

        Once the cooldown has passed the circuit is half-open: exactly one
        trial request is let through per cooldown period. Its outcome, reported
        via record_success() or record_failure(), closes or reopens the circuit.
        """

        state = self.state
        if state == CircuitState.CLOSED:
            return
        if state == CircuitState.OPEN:
            raise CircuitOpen(retry_after=self._retry_after(self._open_key))

        trial = self._store.consume(self._trial_key, 1, self._cooldown)
        if not trial.allowed:
            raise CircuitOpen(retry_after=trial.retry_after_seconds or 1)
        logger.info("circuit.half_open_trial")

    def record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.reset()
            logger.info("circuit.closed")
            return
        self._store.delete(self._failures_key)

    def record_failure(self) -> None:
        self._store.set(self._last_failure_key, int(self._clock()), TRIPPED_TTL_SECONDS)

        state = self.state
        if state == CircuitState.HALF_OPEN:
            self._open()
            logger.warning("circuit.reopened", extra={"cooldown_s": self._cooldown})
            return
        if state == CircuitState.OPEN:
            return

        failures = self._store.consume(self._failures_key, sys.maxsize, self._failure_window).count
        if failures >= self._failure_threshold:
            self._open()
            logger.error(
                "circuit.opened",
                extra={"failure_count": failures, "cooldown_s": self._cooldown},
            )

    def _open(self) -> None:
        self._store.set(self._open_key, 1, self._cooldown)
        self._store.set(self._tripped_key, 1, TRIPPED_TTL_SECONDS)
        self._store.delete(self._trial_key)

    def get_status(self) -> dict[str, Any]:
        """Snapshot for health checks and the admin API."""

        state = self.state
        last_failure = self._store.get(self._last_failure_key)
        return {
            "state": state.value,
            "is_healthy": state == CircuitState.CLOSED,
            "failure_count": self._store.get(self._failures_key) or 0,
            "last_failure": (
                datetime.fromtimestamp(last_failure, tz=timezone.utc) if last_failure is not None else None
            ),
            "retry_after": self._retry_after(self._open_key) if state == CircuitState.OPEN else None,
        }

    def reset(self) -> None:
        """Close the circuit and forget every failure."""

        for key in (
            self._failures_key,
            self._open_key,
            self._tripped_key,
            self._trial_key,
            self._last_failure_key,
        ):
            self._store.delete(key)
