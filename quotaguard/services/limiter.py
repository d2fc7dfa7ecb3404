"""Rate limiter orchestrator.

Turns "check, consume, execute, optionally refund" into a single call around
a unit of work. Admission accounting is committed synchronously under the
limiter's lock before the wrapped operation starts, so a slow or failing
operation never distorts admission for later callers.

Notes:
- Per-process only: state lives in memory and is lost on restart.
- Thread-safe: one re-entrant lock per limiter guards all strategy access.
- No retries and no timeouts: both are the caller's concern.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from quotaguard.adapters.strategies.base import AbstractStrategy, Clock, Snapshot
from quotaguard.adapters.strategies.factory import create_strategy
from quotaguard.core.errors import LimitExceededError
from quotaguard.schemas.limits import LimiterConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class LimiterCallbacks:
    """Synchronous notifications fired at the exact point of each transition.

    Attributes:
        on_admitted: Called with the remaining capacity right after an admission.
        on_limited: Called with retry_after (seconds) right before a rejection.
        on_reset: Called after ``reset()`` discarded admission state.
    """

    on_admitted: Callable[[int], None] | None = None
    on_limited: Callable[[float], None] | None = None
    on_reset: Callable[[], None] | None = None


@dataclass(frozen=True)
class _Admission:
    """Ticket tying a refund to the strategy generation that admitted it."""

    generation: int
    snapshot: Snapshot


class RateLimiter:
    """Guard a rate-limited resource with one admission strategy.

    Example:
        >>> limiter = RateLimiter(LimiterConfig(capacity=3, window_seconds=1))
        >>> limiter.guard(lambda: "ok")
        'ok'
    """

    def __init__(
        self,
        config: LimiterConfig | None = None,
        callbacks: LimiterCallbacks | None = None,
        *,
        clock: Clock = time.time,
        name: str | None = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            config: Limiter configuration (defaults from settings when omitted).
            callbacks: Optional admission/limit/reset notifications.
            clock: Time source returning seconds.
            name: Optional label used in logs.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        self._config = config if config is not None else LimiterConfig()
        self._callbacks = callbacks or LimiterCallbacks()
        self._clock = clock
        self._name = name
        self._lock = threading.RLock()
        self._strategy: AbstractStrategy = create_strategy(self._config, clock=clock)
        # Bumped by reset()/reconfigure() so stale admissions never refund.
        self._generation = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"RateLimiter(name={self._name!r}, algorithm={self._config.algorithm.value}, "
            f"capacity={self._config.capacity}, window_seconds={self._config.window_seconds})"
        )

    @property
    def config(self) -> LimiterConfig:
        return self._config

    @property
    def name(self) -> str | None:
        return self._name

    def _log_extra(self, **fields: object) -> dict[str, object]:
        extra: dict[str, object] = {
            "algorithm": self._config.algorithm.value,
            "limit": self._config.capacity,
            "window_s": self._config.window_seconds,
        }
        if self._name:
            extra["limiter"] = self._name
        extra.update(fields)
        return extra

    def _admit(self) -> _Admission:
        """Check and consume atomically, or raise LimitExceededError."""
        with self._lock:
            if not self._strategy.can_admit():
                retry_after = self._strategy.wait_time()
                snapshot = self._strategy.snapshot()
                if self._callbacks.on_limited:
                    self._callbacks.on_limited(retry_after)
                logger.warning(
                    "rate_limit.exceeded",
                    extra=self._log_extra(retry_after_s=retry_after),
                )
                raise LimitExceededError(
                    retry_after,
                    limit=snapshot.limit,
                    reset_at=snapshot.reset_at,
                )

            self._strategy.consume()
            snapshot = self._strategy.snapshot()
            if self._callbacks.on_admitted:
                self._callbacks.on_admitted(snapshot.remaining)
            logger.debug(
                "rate_limit.allowed",
                extra=self._log_extra(remaining=snapshot.remaining),
            )
            return _Admission(generation=self._generation, snapshot=snapshot)

    def _settle(self, admission: _Admission, *, succeeded: bool) -> None:
        """Refund the admission when the outcome makes it eligible."""
        eligible = (
            self._config.refund_on_success if succeeded else self._config.refund_on_failure
        )
        if not eligible:
            return
        with self._lock:
            if admission.generation != self._generation:
                logger.debug(
                    "rate_limit.refund_skipped",
                    extra=self._log_extra(reason="state_discarded"),
                )
                return
            self._strategy.refund()
            logger.debug(
                "rate_limit.refunded",
                extra=self._log_extra(succeeded=succeeded),
            )

    def acquire(self) -> Snapshot:
        """Admit one operation without wrapping it.

        Returns:
            Snapshot taken right after the admission was recorded.

        Raises:
            LimitExceededError: If no capacity is left.
        """
        return self._admit().snapshot

    def guard(self, operation: Callable[[], T]) -> T:
        """Run ``operation`` if admitted.

        Args:
            operation: Zero-argument callable performing the rate-limited work.

        Returns:
            Whatever ``operation`` returns.

        Raises:
            LimitExceededError: If no capacity is left; ``operation`` never runs.
            Exception: Anything ``operation`` raises, unchanged.
        """
        admission = self._admit()
        try:
            result = operation()
        except BaseException:
            self._settle(admission, succeeded=False)
            raise
        self._settle(admission, succeeded=True)
        return result

    async def guard_async(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Async variant of ``guard``.

        Admission is committed before the first ``await``; the engine imposes
        no cancellation or timeout on ``operation``.
        """
        admission = self._admit()
        try:
            result = await operation()
        except BaseException:
            self._settle(admission, succeeded=False)
            raise
        self._settle(admission, succeeded=True)
        return result

    def can_admit(self) -> bool:
        """Preflight: would an admission succeed right now? Consumes nothing."""
        with self._lock:
            return self._strategy.can_admit()

    def wait_time(self) -> float:
        """Seconds until an admission can succeed (0 when open)."""
        with self._lock:
            return self._strategy.wait_time()

    def get_snapshot(self) -> Snapshot:
        with self._lock:
            return self._strategy.snapshot()

    def reset(self) -> None:
        """Discard admission state immediately, regardless of in-flight work."""
        with self._lock:
            self._strategy.reset()
            self._generation += 1
            if self._callbacks.on_reset:
                self._callbacks.on_reset()
        logger.info("rate_limit.reset", extra=self._log_extra())

    def reconfigure(self, config: LimiterConfig) -> None:
        """Swap in a fresh strategy built from ``config``, discarding history.

        Operations already past admission keep running and do not refund into
        the new strategy.

        Raises:
            ConfigurationError: If ``config`` selects an unknown algorithm.
        """
        strategy = create_strategy(config, clock=self._clock)
        with self._lock:
            self._config = config
            self._strategy = strategy
            self._generation += 1
        logger.info("rate_limit.reconfigured", extra=self._log_extra())
