"""Admission strategy interface.

The orchestrator depends on this abstraction (not on a concrete algorithm),
so the algorithm is chosen once at construction and never dispatched on by
name afterwards.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from quotaguard.schemas.limits import LimiterConfig

Clock = Callable[[], float]


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time view of a limiter. Derived, never authoritative.

    Attributes:
        limit: Configured capacity.
        remaining: Operations that can still be admitted right now.
        reset_at: Clock time (seconds) when capacity is next restored.
        limited: Whether the next admission would be rejected.
        retry_after: Seconds until an admission can succeed (0 when open).
        total_admitted: Admissions counted in the current window.
    """

    limit: int
    remaining: int
    reset_at: float
    limited: bool
    retry_after: float
    total_admitted: int

    def as_headers(self) -> dict[str, str]:
        """Render the snapshot as conventional rate limit response headers.

        ``X-RateLimit-Reset`` is ``reset_at`` rounded up, so it is an epoch
        timestamp only when the limiter runs on the default ``time.time``
        clock. Limiters on a monotonic clock should not publish it.
        """
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(math.ceil(self.reset_at))),
        }
        if self.limited:
            headers["Retry-After"] = str(int(math.ceil(self.retry_after)))
        return headers


class AbstractStrategy(ABC):
    """Interface for admission algorithms.

    Strategies are pure bookkeeping over a clock: they know nothing about the
    wrapped operation and do no locking of their own (the owning limiter
    serializes access).
    """

    def __init__(self, config: LimiterConfig, *, clock: Clock) -> None:
        self._config = config
        self._clock = clock

    @property
    def capacity(self) -> int:
        return self._config.capacity

    @property
    def window_seconds(self) -> float:
        return self._config.window_seconds

    @abstractmethod
    def can_admit(self) -> bool:
        """Return whether one more operation may be admitted now."""
        raise NotImplementedError

    @abstractmethod
    def consume(self) -> None:
        """Record one admission at the current time."""
        raise NotImplementedError

    @abstractmethod
    def refund(self) -> None:
        """Give back one unit of previously consumed capacity."""
        raise NotImplementedError

    @abstractmethod
    def snapshot(self) -> Snapshot:
        """Return the current Snapshot.

        Repeated calls under a held clock return equal snapshots.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        """Discard all admission history."""
        raise NotImplementedError

    @abstractmethod
    def wait_time(self) -> float:
        """Return seconds until an admission can succeed (0 when open)."""
        raise NotImplementedError
