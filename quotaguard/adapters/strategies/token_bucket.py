"""Token bucket strategy.

The bucket starts full and refills continuously at ``capacity / window``
tokens per second. Bursts of up to ``capacity`` are allowed, after which
admissions settle to the refill rate.
"""

from __future__ import annotations

import math

from quotaguard.adapters.strategies.base import AbstractStrategy, Clock, Snapshot
from quotaguard.schemas.limits import LimiterConfig

# Float drift tolerance when deciding the bucket is full again.
_EPSILON = 1e-9


def _ceil_ms(seconds: float) -> float:
    """Round a positive duration up to the next whole millisecond."""
    return math.ceil(round(seconds * 1000, 6)) / 1000


class TokenBucketStrategy(AbstractStrategy):
    """Admit iff at least one whole token is available after refilling."""

    def __init__(self, config: LimiterConfig, *, clock: Clock) -> None:
        super().__init__(config, clock=clock)
        self._refill_rate = self.capacity / self.window_seconds
        self._tokens = float(self.capacity)
        self._last_refill = clock()

    @property
    def refill_rate(self) -> float:
        """Tokens added per second."""
        return self._refill_rate

    def _refill(self) -> float:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self._refill_rate)
        if self.capacity - self._tokens < _EPSILON:
            self._tokens = float(self.capacity)
        self._last_refill = now
        return now

    def can_admit(self) -> bool:
        self._refill()
        return self._tokens >= 1

    def consume(self) -> None:
        self._refill()
        self._tokens = max(0.0, self._tokens - 1)

    def refund(self) -> None:
        self._refill()
        self._tokens = min(float(self.capacity), self._tokens + 1)

    def wait_time(self) -> float:
        self._refill()
        if self._tokens >= 1:
            return 0.0
        return _ceil_ms((1 - self._tokens) / self._refill_rate)

    def snapshot(self) -> Snapshot:
        now = self._refill()
        remaining = math.floor(self._tokens)
        limited = self._tokens < 1
        if self._tokens >= self.capacity:
            reset_at = now + self.window_seconds
        else:
            reset_at = now + (self.capacity - self._tokens) / self._refill_rate
        return Snapshot(
            limit=self.capacity,
            remaining=remaining,
            reset_at=reset_at,
            limited=limited,
            retry_after=self.wait_time() if limited else 0.0,
            total_admitted=self.capacity - remaining,
        )

    def reset(self) -> None:
        self._tokens = float(self.capacity)
        self._last_refill = self._clock()
