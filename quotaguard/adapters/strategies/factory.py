"""Factory for admission strategy instances."""

from quotaguard.adapters.strategies.base import AbstractStrategy, Clock
from quotaguard.adapters.strategies.fixed_window import FixedWindowStrategy
from quotaguard.adapters.strategies.sliding_window import SlidingWindowStrategy
from quotaguard.adapters.strategies.token_bucket import TokenBucketStrategy
from quotaguard.core.errors import ConfigurationError
from quotaguard.schemas.limits import Algorithm, LimiterConfig

_STRATEGIES: dict[Algorithm, type[AbstractStrategy]] = {
    Algorithm.SLIDING_WINDOW: SlidingWindowStrategy,
    Algorithm.FIXED_WINDOW: FixedWindowStrategy,
    Algorithm.TOKEN_BUCKET: TokenBucketStrategy,
}


def create_strategy(config: LimiterConfig, *, clock: Clock) -> AbstractStrategy:
    """Instantiate the strategy selected by ``config.algorithm``.

    Args:
        config: Validated limiter configuration.
        clock: Time source returning seconds.

    Returns:
        AbstractStrategy: Fresh strategy with empty admission history.

    Raises:
        ConfigurationError: If the algorithm has no registered strategy.
    """
    strategy_cls = _STRATEGIES.get(config.algorithm)
    if strategy_cls is None:
        raise ConfigurationError(
            code="unknown_algorithm",
            message=(
                f"Unknown algorithm: '{config.algorithm}'. Supported algorithms: "
                + ", ".join(a.value for a in _STRATEGIES)
            ),
            details={"algorithm": str(config.algorithm)},
        )
    return strategy_cls(config, clock=clock)
