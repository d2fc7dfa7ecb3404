"""Properties every admission strategy must satisfy."""

from unittest.mock import Mock

import pytest

from quotaguard.adapters.strategies import (
    Snapshot,
    FixedWindowStrategy,
    SlidingWindowStrategy,
    TokenBucketStrategy,
    create_strategy,
)
from quotaguard.core.errors import ConfigurationError
from quotaguard.schemas.limits import Algorithm, LimiterConfig

ALGORITHMS = ["sliding-window", "fixed-window", "token-bucket"]


@pytest.mark.parametrize(
    ("algorithm", "expected_cls"),
    [
        ("sliding-window", SlidingWindowStrategy),
        ("fixed-window", FixedWindowStrategy),
        ("token-bucket", TokenBucketStrategy),
    ],
)
def test_factory_selects_strategy(clock: Mock, algorithm: str, expected_cls: type) -> None:
    config = LimiterConfig(capacity=1, window_seconds=1, algorithm=algorithm)
    assert isinstance(create_strategy(config, clock=clock), expected_cls)


def test_factory_rejects_unregistered_algorithm(clock: Mock) -> None:
    # model_construct skips validation, simulating a value the factory has no class for.
    config = LimiterConfig.model_construct(
        capacity=1,
        window_seconds=1.0,
        algorithm="leaky-bucket",
        refund_on_success=False,
        refund_on_failure=False,
    )

    with pytest.raises(ConfigurationError) as exc_info:
        create_strategy(config, clock=clock)

    assert exc_info.value.code == "unknown_algorithm"


@pytest.mark.parametrize("algorithm", ALGORITHMS)
def test_remaining_is_bounded_and_non_increasing(clock: Mock, algorithm: str) -> None:
    capacity = 4
    strategy = create_strategy(
        LimiterConfig(capacity=capacity, window_seconds=10, algorithm=algorithm),
        clock=clock,
    )

    previous = strategy.snapshot().remaining
    assert previous == capacity
    for step in range(capacity + 3):
        clock.return_value = step * 0.001
        if strategy.can_admit():
            strategy.consume()
        remaining = strategy.snapshot().remaining
        assert 0 <= remaining <= capacity
        assert remaining <= previous
        previous = remaining

    assert previous == 0


@pytest.mark.parametrize("algorithm", ALGORITHMS)
def test_never_admits_more_than_capacity_in_one_instant(clock: Mock, algorithm: str) -> None:
    strategy = create_strategy(
        LimiterConfig(capacity=5, window_seconds=1, algorithm=algorithm),
        clock=clock,
    )
    clock.return_value = 0.5

    admitted = 0
    for _ in range(20):
        if strategy.can_admit():
            strategy.consume()
            admitted += 1

    assert admitted == 5


@pytest.mark.parametrize("algorithm", ALGORITHMS)
def test_snapshot_is_idempotent_under_held_clock(clock: Mock, algorithm: str) -> None:
    strategy = create_strategy(
        LimiterConfig(capacity=3, window_seconds=1, algorithm=algorithm),
        clock=clock,
    )
    strategy.consume()
    clock.return_value = 0.25
    strategy.consume()
    clock.return_value = 0.4

    assert strategy.snapshot() == strategy.snapshot()


@pytest.mark.parametrize("algorithm", ALGORITHMS)
def test_can_admit_does_not_consume(clock: Mock, algorithm: str) -> None:
    strategy = create_strategy(
        LimiterConfig(capacity=2, window_seconds=1, algorithm=algorithm),
        clock=clock,
    )

    for _ in range(10):
        assert strategy.can_admit() is True

    assert strategy.snapshot().remaining == 2


@pytest.mark.parametrize("algorithm", list(Algorithm))
def test_limited_snapshot_has_positive_retry_after(clock: Mock, algorithm: Algorithm) -> None:
    strategy = create_strategy(
        LimiterConfig(capacity=1, window_seconds=2, algorithm=algorithm),
        clock=clock,
    )
    strategy.consume()

    snapshot = strategy.snapshot()
    assert snapshot.limited is True
    assert snapshot.retry_after > 0
    assert snapshot.retry_after == pytest.approx(strategy.wait_time())


def test_snapshot_headers_round_reset_and_retry_up() -> None:
    open_snapshot = Snapshot(
        limit=5, remaining=2, reset_at=1_700_000_000.2, limited=False, retry_after=0.0, total_admitted=3
    )
    limited_snapshot = Snapshot(
        limit=5, remaining=0, reset_at=1_700_000_000.2, limited=True, retry_after=0.4, total_admitted=5
    )

    assert open_snapshot.as_headers() == {
        "X-RateLimit-Limit": "5",
        "X-RateLimit-Remaining": "2",
        "X-RateLimit-Reset": "1700000001",
    }
    assert limited_snapshot.as_headers()["Retry-After"] == "1"
