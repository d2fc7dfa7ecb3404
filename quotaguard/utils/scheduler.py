"""Minimal periodic scheduler backed by a daemon thread.

Used by the keyed registry for its idle sweep. ``stop()`` wakes the worker
immediately instead of waiting for the current interval to elapse.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Call ``func`` every ``interval`` seconds until stopped.

    Attributes:
        interval: Seconds between two calls.
        name: Thread name (useful in thread dumps and logs).
    """

    def __init__(self, func: Callable[[], object], interval: float, *, name: str = "periodic-task") -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.interval = interval
        self.name = name
        self._func = func
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        """Start the worker thread (no-op when already running)."""
        with self._lock:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the worker to exit and wait for it."""
        with self._lock:
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self._func()
            except Exception:
                # A failing run must not kill the schedule; the next tick retries.
                logger.exception("scheduler.task_failed", extra={"task": self.name})
