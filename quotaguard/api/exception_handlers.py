"""Exception handlers mapping engine errors to HTTP responses.

Design:
- LimitExceededError → 429 with Retry-After header
- ConfigurationError → 500 (a misconfigured server, not a client fault)
- RegistryClosedError → 503
- Other AppError subclasses → 400
- Unexpected Exception → generic 500 (safety net)
"""

import logging
import math

from fastapi import Request
from fastapi.responses import JSONResponse

from quotaguard.core.errors import (
    AppError,
    ConfigurationError,
    LimitExceededError,
    RegistryClosedError,
)
from quotaguard.core.logging import get_limiter_key

logger = logging.getLogger(__name__)


def _status_for(exc: AppError) -> int:
    if isinstance(exc, LimitExceededError):
        return 429
    if isinstance(exc, ConfigurationError):
        return 500
    if isinstance(exc, RegistryClosedError):
        return 503
    return 400


def build_error_response(exc: AppError, *, headers: dict[str, str] | None = None) -> JSONResponse:
    """Render an AppError with the consistent ``{"error": {...}}`` shape.

    Args:
        exc: AppError instance (or subclass).
        headers: Extra response headers.

    Returns:
        JSONResponse with the status code matching the error type.
    """
    status_code = _status_for(exc)

    error_content: dict[str, object] = {
        "code": exc.code,
        "message": exc.message,
    }
    if exc.details:
        error_content["details"] = dict(exc.details)

    response_headers = dict(headers or {})
    if isinstance(exc, LimitExceededError):
        response_headers.setdefault("Retry-After", str(int(math.ceil(exc.retry_after))))

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=response_headers or None,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle engine errors raised from route handlers."""
    response = build_error_response(exc)
    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": response.status_code,
            "has_details": bool(exc.details),
            "limiter_key": get_limiter_key(),
        },
    )
    return response


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure for debugging while returning a generic message, so no
    stack traces leak to clients.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with a FastAPI app.

    Specific handlers are registered before the general fallback.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
