"""In-process admission control: sliding window, fixed window and token bucket limiters."""

from quotaguard.adapters.strategies import (
    AbstractStrategy,
    FixedWindowStrategy,
    SlidingWindowStrategy,
    Snapshot,
    TokenBucketStrategy,
    create_strategy,
)
from quotaguard.core.errors import (
    AppError,
    ConfigurationError,
    LimitExceededError,
    RegistryClosedError,
)
from quotaguard.core.logging import configure_logging
from quotaguard.schemas.limits import Algorithm, LimiterConfig, RegistryConfig
from quotaguard.services.limiter import LimiterCallbacks, RateLimiter
from quotaguard.services.registry import KeyedRateLimiter

__version__ = "0.1.0"

__all__ = [
    "AbstractStrategy",
    "Algorithm",
    "AppError",
    "ConfigurationError",
    "FixedWindowStrategy",
    "KeyedRateLimiter",
    "LimitExceededError",
    "LimiterCallbacks",
    "LimiterConfig",
    "RateLimiter",
    "RegistryClosedError",
    "RegistryConfig",
    "SlidingWindowStrategy",
    "Snapshot",
    "TokenBucketStrategy",
    "configure_logging",
    "create_strategy",
]
