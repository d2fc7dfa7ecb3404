"""Unit tests for the fixed window strategy."""

from unittest.mock import Mock

import pytest

from quotaguard.adapters.strategies.fixed_window import FixedWindowStrategy
from quotaguard.schemas.limits import LimiterConfig


def _strategy(clock: Mock, *, capacity: int = 3, window_seconds: float = 10.0) -> FixedWindowStrategy:
    config = LimiterConfig(capacity=capacity, window_seconds=window_seconds, algorithm="fixed-window")
    return FixedWindowStrategy(config, clock=clock)


def test_blocks_when_over_capacity(clock: Mock) -> None:
    strategy = _strategy(clock, capacity=2)

    strategy.consume()
    strategy.consume()

    assert strategy.can_admit() is False
    snapshot = strategy.snapshot()
    assert snapshot.remaining == 0
    assert snapshot.limited is True
    assert snapshot.retry_after == pytest.approx(10.0)


def test_resets_on_new_window(clock: Mock) -> None:
    strategy = _strategy(clock, capacity=1)
    strategy.consume()
    assert strategy.can_admit() is False

    clock.return_value = 10.0
    assert strategy.can_admit() is True


def test_boundary_burst_admits_twice_capacity(clock: Mock) -> None:
    strategy = _strategy(clock)
    admitted = 0

    clock.return_value = 9.95
    while strategy.can_admit():
        strategy.consume()
        admitted += 1

    clock.return_value = 10.0
    while strategy.can_admit():
        strategy.consume()
        admitted += 1

    assert admitted == 6


def test_window_is_non_carrying(clock: Mock) -> None:
    strategy = _strategy(clock)

    # Idle for several windows: the next window starts at the call time.
    clock.return_value = 37.5
    strategy.consume()

    snapshot = strategy.snapshot()
    assert snapshot.reset_at == pytest.approx(47.5)
    assert snapshot.total_admitted == 1


def test_wait_time_counts_down_to_window_end(clock: Mock) -> None:
    strategy = _strategy(clock)
    clock.return_value = 4.0
    assert strategy.wait_time() == pytest.approx(6.0)

    clock.return_value = 10.0
    # Rolled over: a fresh window of full length.
    assert strategy.wait_time() == pytest.approx(10.0)


def test_refund_decrements_count_floored_at_zero(clock: Mock) -> None:
    strategy = _strategy(clock)
    strategy.consume()
    strategy.consume()

    strategy.refund()
    assert strategy.snapshot().remaining == 2

    strategy.refund()
    strategy.refund()
    assert strategy.snapshot().remaining == 3


def test_reset_restarts_window_now(clock: Mock) -> None:
    strategy = _strategy(clock)
    strategy.consume()

    clock.return_value = 3.0
    strategy.reset()

    snapshot = strategy.snapshot()
    assert snapshot.remaining == 3
    assert snapshot.reset_at == pytest.approx(13.0)
