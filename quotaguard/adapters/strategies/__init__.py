"""Admission strategies - the window algorithms behind every limiter."""

from quotaguard.adapters.strategies.base import AbstractStrategy, Snapshot
from quotaguard.adapters.strategies.factory import create_strategy
from quotaguard.adapters.strategies.fixed_window import FixedWindowStrategy
from quotaguard.adapters.strategies.sliding_window import SlidingWindowStrategy
from quotaguard.adapters.strategies.token_bucket import TokenBucketStrategy

__all__ = [
    "AbstractStrategy",
    "FixedWindowStrategy",
    "SlidingWindowStrategy",
    "Snapshot",
    "TokenBucketStrategy",
    "create_strategy",
]
