"""Fixed window counter strategy.

O(1) time and memory. The window starts at construction (or at the first
call after the previous window ended) rather than on an epoch-aligned
boundary. Up to 2x capacity can be admitted across a short interval that
straddles a window boundary; that burst is part of the algorithm.
"""

from __future__ import annotations

from quotaguard.adapters.strategies.base import AbstractStrategy, Clock, Snapshot
from quotaguard.schemas.limits import LimiterConfig


class FixedWindowStrategy(AbstractStrategy):
    """Admit iff fewer than ``capacity`` admissions happened in the current window."""

    def __init__(self, config: LimiterConfig, *, clock: Clock) -> None:
        super().__init__(config, clock=clock)
        self._window_start = clock()
        self._count = 0

    def _roll(self, now: float) -> None:
        # Non-carrying: the new window starts at `now`, not at the old boundary.
        if now >= self._window_start + self.window_seconds:
            self._window_start = now
            self._count = 0

    def can_admit(self) -> bool:
        self._roll(self._clock())
        return self._count < self.capacity

    def consume(self) -> None:
        self._roll(self._clock())
        self._count += 1

    def refund(self) -> None:
        self._roll(self._clock())
        self._count = max(0, self._count - 1)

    def wait_time(self) -> float:
        now = self._clock()
        self._roll(now)
        return max(0.0, self._window_start + self.window_seconds - now)

    def snapshot(self) -> Snapshot:
        self._roll(self._clock())
        remaining = max(0, self.capacity - self._count)
        limited = remaining == 0
        return Snapshot(
            limit=self.capacity,
            remaining=remaining,
            reset_at=self._window_start + self.window_seconds,
            limited=limited,
            retry_after=self.wait_time() if limited else 0.0,
            total_admitted=self._count,
        )

    def reset(self) -> None:
        self._count = 0
        self._window_start = self._clock()
