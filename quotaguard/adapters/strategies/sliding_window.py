"""Sliding window log strategy.

Keeps the timestamp of every admission still inside the window, so at most
``capacity`` admissions ever fall in any window-length interval (no boundary
double burst). Memory is bounded by ``capacity`` timestamps.
"""

from __future__ import annotations

import logging
from collections import deque

from quotaguard.adapters.strategies.base import AbstractStrategy, Clock, Snapshot
from quotaguard.schemas.limits import LimiterConfig

logger = logging.getLogger(__name__)


class SlidingWindowStrategy(AbstractStrategy):
    """Admit iff fewer than ``capacity`` timestamps lie in ``(now - window, now]``."""

    def __init__(self, config: LimiterConfig, *, clock: Clock) -> None:
        super().__init__(config, clock=clock)
        self._timestamps: deque[float] = deque()

    def _purge(self, now: float) -> None:
        # Timestamps are ascending, so expired ones are always at the left.
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    def can_admit(self) -> bool:
        self._purge(self._clock())
        return len(self._timestamps) < self.capacity

    def consume(self) -> None:
        now = self._clock()
        self._purge(now)
        self._timestamps.append(now)

    def refund(self) -> None:
        """Drop the newest recorded timestamp.

        This is an approximation: once other admissions have interleaved, the
        newest timestamp is not necessarily the one being refunded, so the
        window may reopen slightly later (or earlier) than an exact undo would.
        """

        self._purge(self._clock())
        if self._timestamps:
            self._timestamps.pop()
            logger.debug(
                "rate_limit.refund_approximate",
                extra={"algorithm": "sliding-window", "in_window": len(self._timestamps)},
            )

    def wait_time(self) -> float:
        now = self._clock()
        self._purge(now)
        if not self._timestamps:
            return 0.0
        return max(0.0, self.window_seconds - (now - self._timestamps[0]))

    def snapshot(self) -> Snapshot:
        now = self._clock()
        self._purge(now)
        admitted = len(self._timestamps)
        remaining = max(0, self.capacity - admitted)
        limited = remaining == 0
        if self._timestamps:
            reset_at = self._timestamps[0] + self.window_seconds
        else:
            reset_at = now + self.window_seconds
        return Snapshot(
            limit=self.capacity,
            remaining=remaining,
            reset_at=reset_at,
            limited=limited,
            retry_after=self.wait_time() if limited else 0.0,
            total_admitted=admitted,
        )

    def reset(self) -> None:
        self._timestamps.clear()
