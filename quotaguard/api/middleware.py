"""HTTP middleware guarding every request with a keyed rate limiter.

Rate limiting strategy:
- One limiter per client IP by default.
- An ``X-API-Key`` header only selects its own limiter when the key is in the
  caller's trusted set (see ``api_key_or_ip``); unknown keys fall back to the
  IP so rotating header values cannot mint fresh quotas.
- The downstream handler runs as the guarded operation, so refund settings
  (e.g. refund_on_failure) apply to requests that raise.
- Throttled requests get a 429 JSON error plus Retry-After/X-RateLimit-*
  headers; admitted ones get X-RateLimit-* headers.

Usage:
    registry = KeyedRateLimiter(RegistryConfig(...))
    install_rate_limiting(app, registry, trusted_api_keys=settings_keys)
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from fastapi import FastAPI, Request, Response

from quotaguard.api.exception_handlers import build_error_response
from quotaguard.core.errors import LimitExceededError
from quotaguard.core.logging import hash_key
from quotaguard.services.registry import KeyedRateLimiter

logger = logging.getLogger(__name__)

KeyFunc = Callable[[Request], str]

API_KEY_HEADER = "X-API-Key"


def client_key(request: Request) -> str:
    """Build the limiter key for the current request from the client IP.

    Args:
        request: Incoming request.

    Returns:
        str: Namespaced limiter key (``ip:<host>``).
    """

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def api_key_or_ip(trusted_api_keys: Iterable[str]) -> KeyFunc:
    """Key requests by API key, but only for keys in ``trusted_api_keys``.

    Requests without a header, or with a key outside the set, are keyed by
    IP like ``client_key``.

    Args:
        trusted_api_keys: Raw API keys the application has issued.

    Returns:
        Key function producing ``api_key:<hash>`` or ``ip:<host>``.
    """

    trusted = frozenset(trusted_api_keys)

    def key_func(request: Request) -> str:
        api_key = request.headers.get(API_KEY_HEADER)
        if api_key and api_key in trusted:
            return f"api_key:{hash_key(api_key)}"
        return client_key(request)

    return key_func


def rate_limit_middleware(
    registry: KeyedRateLimiter,
    *,
    key_func: KeyFunc = client_key,
    include_headers: bool = True,
    exempt_paths: Iterable[str] = (),
):
    """Create an HTTP middleware function bound to ``registry``.

    Args:
        registry: Registry owning the per-client limiters.
        key_func: Maps a request to its limiter key.
        include_headers: Add X-RateLimit-* and Retry-After headers.
        exempt_paths: Paths served without rate limiting (e.g. health checks).

    Returns:
        Coroutine function suitable for ``app.middleware("http")``.
    """

    exempt = frozenset(exempt_paths)

    async def middleware(request: Request, call_next) -> Response:
        if request.url.path in exempt:
            return await call_next(request)

        key = key_func(request)
        try:
            response: Response = await registry.dispatch_async(key, lambda: call_next(request))
        except LimitExceededError as exc:
            logger.info(
                "rate_limit.rejected_request",
                extra={
                    "key_hash": hash_key(key),
                    "request_path": request.url.path,
                    "retry_after_s": exc.retry_after,
                },
            )
            headers = registry.get_snapshot(key).as_headers() if include_headers else None
            return build_error_response(exc, headers=headers)

        if include_headers:
            for name, value in registry.get_snapshot(key).as_headers().items():
                if name != "Retry-After":
                    response.headers.setdefault(name, value)
        return response

    return middleware


def install_rate_limiting(
    app: FastAPI,
    registry: KeyedRateLimiter,
    *,
    key_func: KeyFunc | None = None,
    trusted_api_keys: Iterable[str] | None = None,
    include_headers: bool = True,
    exempt_paths: Iterable[str] = (),
) -> None:
    """Register the rate limiting middleware on ``app``.

    ``key_func`` wins when given; otherwise requests are keyed by trusted API
    key (when ``trusted_api_keys`` is set) or by client IP.

    The registry stays owned by the caller; it is destroyed on app shutdown
    only if the caller wires that up.
    """

    if key_func is None:
        key_func = api_key_or_ip(trusted_api_keys) if trusted_api_keys else client_key

    app.middleware("http")(
        rate_limit_middleware(
            registry,
            key_func=key_func,
            include_headers=include_headers,
            exempt_paths=exempt_paths,
        )
    )
