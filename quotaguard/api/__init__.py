from __future__ import annotations

from quotaguard.api.exception_handlers import build_error_response, setup_exception_handlers
from quotaguard.api.middleware import (
    api_key_or_ip,
    client_key,
    install_rate_limiting,
    rate_limit_middleware,
)

__all__ = [
    "api_key_or_ip",
    "build_error_response",
    "client_key",
    "install_rate_limiting",
    "rate_limit_middleware",
    "setup_exception_handlers",
]
