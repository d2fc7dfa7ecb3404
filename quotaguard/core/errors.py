"""Application-level exception types.

This module defines the errors raised by the admission-control engine,
enabling consistent error handling, logging, and HTTP responses in
collaborators such as the FastAPI integration.

Exceptions raised by a wrapped operation are never converted into one of
these types: they propagate to the caller unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes flexible while encouraging
    consistent keys across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    algorithm: str
    retry_after: float
    limit: int
    remaining: int
    reset_at: float
    errors: list[dict[str, Any]]
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for engine failures.

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


class ConfigurationError(ValidationAppError):
    """Raised when a limiter or registry configuration is invalid.

    Covers capacity <= 0, window <= 0 and unknown algorithms. Always raised
    at construction (or reconfiguration) time, never deferred to admission.
    """


class RegistryClosedError(AppError):
    """Raised when a destroyed registry is used again."""


class LimitExceededError(AppError):
    """Raised before a guarded operation starts when no quota is left.

    Attributes:
        retry_after: Seconds until an admission can succeed.
    """

    def __init__(
        self,
        retry_after: float,
        *,
        limit: int | None = None,
        reset_at: float | None = None,
        message: str | None = None,
    ) -> None:
        self.retry_after = max(0.0, float(retry_after))
        details: ErrorDetails = {"retry_after": self.retry_after}
        if limit is not None:
            details["limit"] = limit
        if reset_at is not None:
            details["reset_at"] = reset_at
        super().__init__(
            code="rate_limit_exceeded",
            message=message
            or f"Rate limit exceeded. Retry after {self.retry_after:.3f}s",
            details=details,
        )
