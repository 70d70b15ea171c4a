"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    action: str
    max_requests: int
    window_seconds: int
    retry_after: int
    status: str
    dead_letter_id: int
    event_id: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class NotFoundAppError(AppError):
    """Raised when a queue event or dead letter record does not exist."""


class InvalidConfiguration(AppError):
    """Raised when a guard is called with a non-positive budget or window."""


class InvalidStatus(AppError):
    """Raised when a status value is outside every known status family.

    Indicates a status enumeration was extended without updating the
    classification sets. Must propagate.
    """


class RateLimitExceeded(AppError):
    """Raised when an action exceeded its request budget for the window.

    Recoverable: callers retry later or surface the condition to the user.
    """

    def __init__(
        self,
        action: str,
        max_requests: int,
        window_seconds: int,
        retry_after: int | None = None,
    ) -> None:
        self.action = action
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.retry_after = retry_after
        details: ErrorDetails = {
            "action": action,
            "max_requests": max_requests,
            "window_seconds": window_seconds,
        }
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(
            code="rate_limit_exceeded",
            message=(
                f"Rate limit exceeded for {action}. "
                f"Max {max_requests} requests per {window_seconds} seconds."
            ),
            details=details,
        )


class CircuitOpen(AppError):
    """Raised when SAP calls are suspended after repeated failures.

    Recoverable: the circuit lets a trial request through once the cooldown
    has passed.
    """

    def __init__(self, retry_after: int | None = None) -> None:
        self.retry_after = retry_after
        details: ErrorDetails = {"hint": "SAP is failing repeatedly; calls resume after the cooldown"}
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(
            code="circuit_open",
            message="SAP circuit breaker is open. Requests are temporarily blocked.",
            details=details,
        )
