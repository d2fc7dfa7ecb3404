"""Keyed registry of rate limiters with idle eviction.

Each opaque key (user id, client IP, API name, ...) gets its own
``RateLimiter`` built from a shared configuration template on first use.
A background sweep drops entries that stayed idle longer than
``max_idle_seconds``; a returning key starts again with full capacity.

Locking:
- The registry lock only guards the entry map (creation, touch, eviction).
- It is always taken before, never while holding, a limiter lock, and is
  released before any wrapped operation runs.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from quotaguard.adapters.strategies.base import Clock, Snapshot
from quotaguard.core.errors import ConfigurationError, RegistryClosedError
from quotaguard.core.logging import hash_key, reset_limiter_key, set_limiter_key
from quotaguard.schemas.limits import RegistryConfig
from quotaguard.services.limiter import LimiterCallbacks, RateLimiter
from quotaguard.utils.scheduler import PeriodicTask

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RegistryEntry:
    """Container for a per-key limiter with access metadata."""

    key: str
    limiter: RateLimiter
    last_accessed: float
    in_flight: int = 0


class KeyedRateLimiter:
    """Thread-safe map of key -> RateLimiter with periodic idle eviction."""

    def __init__(
        self,
        config: RegistryConfig | None = None,
        callbacks: LimiterCallbacks | None = None,
        *,
        clock: Clock = time.time,
        autostart: bool = True,
    ) -> None:
        """Initialize the registry.

        Args:
            config: Registry configuration; its ``limiter`` field is the
                template for every per-key limiter.
            callbacks: Notifications shared by every per-key limiter.
            clock: Time source returning seconds (shared with the limiters).
            autostart: Start the background sweep immediately when the
                configured sweep interval is > 0.
        """
        self._config = config if config is not None else RegistryConfig()
        self._callbacks = callbacks
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, RegistryEntry] = {}
        self._closed = False
        self._evictions = 0

        self._sweeper: PeriodicTask | None = None
        if self._config.sweep_interval_seconds > 0:
            self._sweeper = PeriodicTask(
                self.evict_now,
                self._config.sweep_interval_seconds,
                name="quotaguard-idle-sweep",
            )
            if autostart:
                self._sweeper.start()

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"KeyedRateLimiter(entries={len(self._entries)}, "
            f"max_idle_seconds={self._config.max_idle_seconds}, closed={self._closed})"
        )

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __enter__(self) -> "KeyedRateLimiter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.destroy()

    @property
    def config(self) -> RegistryConfig:
        return self._config

    def _ensure_open(self) -> None:
        if self._closed:
            raise RegistryClosedError(
                code="registry_closed",
                message="Registry has been destroyed and can no longer be used",
            )

    def _check_key(self, key: str) -> None:
        if not isinstance(key, str) or not key:
            raise ConfigurationError(
                code="invalid_key",
                message="key must be a non-empty string",
                details={"field": "key"},
            )

    def start(self) -> None:
        """Start the background sweep if it is configured but not running."""
        with self._lock:
            self._ensure_open()
            if self._sweeper is not None:
                self._sweeper.start()

    def _entry_locked(self, key: str) -> RegistryEntry:
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None:
            limiter = RateLimiter(
                self._config.limiter,
                self._callbacks,
                clock=self._clock,
                name=hash_key(key),
            )
            entry = RegistryEntry(key=key, limiter=limiter, last_accessed=now)
            self._entries[key] = entry
            logger.debug(
                "registry.entry_created",
                extra={"key_hash": hash_key(key), "size": len(self._entries)},
            )
        else:
            entry.last_accessed = now
        return entry

    def get_limiter(self, key: str) -> RateLimiter:
        """Return the key's limiter, creating it on first use (single-flight).

        Also marks the key as recently used.
        """
        self._check_key(key)
        with self._lock:
            self._ensure_open()
            return self._entry_locked(key).limiter

    def _checkout(self, key: str) -> RegistryEntry:
        self._check_key(key)
        with self._lock:
            self._ensure_open()
            entry = self._entry_locked(key)
            entry.in_flight += 1
            return entry

    def _release(self, entry: RegistryEntry) -> None:
        with self._lock:
            entry.in_flight -= 1
            entry.last_accessed = self._clock()

    def dispatch(self, key: str, operation: Callable[[], T]) -> T:
        """Run ``operation`` under the quota of ``key``.

        The entry is pinned while the operation runs, so the idle sweep cannot
        drop it mid-flight, and its idle time restarts when the operation ends.

        Raises:
            LimitExceededError: If the key has no capacity left.
        """
        entry = self._checkout(key)
        token = set_limiter_key(key)
        try:
            return entry.limiter.guard(operation)
        finally:
            reset_limiter_key(token)
            self._release(entry)

    async def dispatch_async(self, key: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Async variant of ``dispatch``."""
        entry = self._checkout(key)
        token = set_limiter_key(key)
        try:
            return await entry.limiter.guard_async(operation)
        finally:
            reset_limiter_key(token)
            self._release(entry)

    def can_admit(self, key: str) -> bool:
        return self.get_limiter(key).can_admit()

    def get_snapshot(self, key: str) -> Snapshot:
        """Return the key's snapshot without creating or touching its entry.

        An unknown key reports what a fresh limiter would: full capacity.
        """
        self._check_key(key)
        with self._lock:
            self._ensure_open()
            entry = self._entries.get(key)
        if entry is not None:
            return entry.limiter.get_snapshot()
        return RateLimiter(self._config.limiter, clock=self._clock).get_snapshot()

    def get_all_snapshots(self) -> dict[str, Snapshot]:
        """Point-in-time key -> Snapshot mapping for all live entries."""
        with self._lock:
            self._ensure_open()
            entries = list(self._entries.values())
        return {entry.key: entry.limiter.get_snapshot() for entry in entries}

    def reset(self, key: str | None = None) -> None:
        """Reset one key's limiter, or every live limiter when ``key`` is None."""
        with self._lock:
            self._ensure_open()
            if key is None:
                limiters = [entry.limiter for entry in self._entries.values()]
            else:
                entry = self._entries.get(key)
                limiters = [entry.limiter] if entry is not None else []
        for limiter in limiters:
            limiter.reset()

    def active_count(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, int | float | bool]:
        """Return lightweight registry metrics without exposing keys."""
        with self._lock:
            return {
                "entries": len(self._entries),
                "evictions": self._evictions,
                "max_idle_seconds": self._config.max_idle_seconds,
                "sweep_interval_seconds": self._config.sweep_interval_seconds,
                "sweeping": self._sweeper is not None and self._sweeper.running,
                "closed": self._closed,
            }

    def evict_now(self) -> int:
        """Drop entries idle longer than ``max_idle_seconds``.

        An entry with a dispatched operation still running is never idle.
        Only the registry lock is held; limiter locks are never taken here.

        Returns:
            Number of evicted entries.
        """
        with self._lock:
            if self._closed:
                return 0
            now = self._clock()
            max_idle = self._config.max_idle_seconds
            idle_keys = [
                key
                for key, entry in self._entries.items()
                if entry.in_flight == 0 and now - entry.last_accessed > max_idle
            ]
            for key in idle_keys:
                del self._entries[key]
            self._evictions += len(idle_keys)
            remaining = len(self._entries)

        if idle_keys:
            logger.info(
                "registry.evicted",
                extra={"evicted": len(idle_keys), "size": remaining},
            )
        return len(idle_keys)

    def destroy(self) -> None:
        """Stop the sweep and drop all entries. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            dropped = len(self._entries)
            self._entries.clear()
            sweeper, self._sweeper = self._sweeper, None
        if sweeper is not None:
            sweeper.stop()
        logger.info("registry.destroyed", extra={"dropped": dropped})
