"""Tests for limiter/registry configuration schemas and settings."""

import pytest

from quotaguard.core.config import LimiterSettings, RegistrySettings
from quotaguard.core.errors import ConfigurationError, ValidationAppError
from quotaguard.schemas.limits import Algorithm, LimiterConfig, RegistryConfig


class TestLimiterConfig:
    def test_defaults_from_settings(self) -> None:
        config = LimiterConfig()

        assert config.capacity == 100
        assert config.window_seconds == 60
        assert config.algorithm is Algorithm.SLIDING_WINDOW
        assert config.refund_on_success is False
        assert config.refund_on_failure is False

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("sliding-window", Algorithm.SLIDING_WINDOW),
            ("fixed_window", Algorithm.FIXED_WINDOW),
            ("Token-Bucket", Algorithm.TOKEN_BUCKET),
            (" token_bucket ", Algorithm.TOKEN_BUCKET),
            (Algorithm.FIXED_WINDOW, Algorithm.FIXED_WINDOW),
        ],
    )
    def test_algorithm_spellings(self, raw, expected: Algorithm) -> None:
        assert LimiterConfig(capacity=1, window_seconds=1, algorithm=raw).algorithm is expected

    def test_is_immutable(self) -> None:
        config = LimiterConfig(capacity=1, window_seconds=1)

        with pytest.raises(Exception):
            config.capacity = 10  # type: ignore[misc]

    def test_with_overrides_revalidates(self) -> None:
        config = LimiterConfig(capacity=1, window_seconds=1)

        assert config.with_overrides(capacity=7).capacity == 7
        with pytest.raises(ConfigurationError):
            config.with_overrides(capacity=0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"capacity": 0},
            {"capacity": 1.5},
            {"window_seconds": 0},
            {"window_seconds": float("inf")},
            {"window_seconds": "soon"},
        ],
    )
    def test_invalid_values_raise_configuration_error(self, kwargs: dict) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            LimiterConfig(**kwargs)

        err = exc_info.value
        assert isinstance(err, ValidationAppError)
        assert err.code == "invalid_configuration"
        assert err.details and err.details["errors"]

    def test_unknown_algorithm_code(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            LimiterConfig(algorithm="leaky-bucket")

        assert exc_info.value.code == "unknown_algorithm"
        assert "algorithm" in exc_info.value.message


class TestRegistryConfig:
    def test_defaults_from_settings(self) -> None:
        config = RegistryConfig()

        assert config.sweep_interval_seconds == 60
        assert config.max_idle_seconds == 3600
        assert config.limiter.capacity == 100

    def test_nested_limiter_dict_is_validated(self) -> None:
        config = RegistryConfig(limiter={"capacity": 5, "window_seconds": 2, "algorithm": "fixed_window"})

        assert config.limiter.algorithm is Algorithm.FIXED_WINDOW

        with pytest.raises(ConfigurationError) as exc_info:
            RegistryConfig(limiter={"capacity": 5, "window_seconds": 2, "algorithm": "nope"})
        assert exc_info.value.code == "unknown_algorithm"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"sweep_interval_seconds": -1},
            {"max_idle_seconds": 0},
        ],
    )
    def test_invalid_values(self, kwargs: dict) -> None:
        with pytest.raises(ConfigurationError):
            RegistryConfig(**kwargs)

    def test_zero_sweep_interval_disables_sweep(self) -> None:
        assert RegistryConfig(sweep_interval_seconds=0).sweep_interval_seconds == 0


class TestSettings:
    def test_limiter_settings_read_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LIMITER_CAPACITY", "7")
        monkeypatch.setenv("LIMITER_ALGORITHM", "token-bucket")

        limiter_settings = LimiterSettings()

        assert limiter_settings.capacity == 7
        assert limiter_settings.algorithm == "token-bucket"

    def test_registry_settings_read_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REGISTRY_MAX_IDLE_SECONDS", "12.5")

        assert RegistrySettings().max_idle_seconds == 12.5
