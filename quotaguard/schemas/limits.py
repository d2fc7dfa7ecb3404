"""Pydantic schemas for limiter and registry configuration."""

from __future__ import annotations

from enum import Enum
from typing import Any, NoReturn

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from quotaguard.core.config import settings
from quotaguard.core.errors import ConfigurationError


class Algorithm(str, Enum):
    """Supported admission algorithms."""

    SLIDING_WINDOW = "sliding-window"
    FIXED_WINDOW = "fixed-window"
    TOKEN_BUCKET = "token-bucket"


def _raise_configuration_error(model: str, exc: ValidationError) -> NoReturn:
    errors = [
        {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
        for err in exc.errors(include_url=False)
    ]
    unknown_algorithm = any(err["loc"].split(".")[-1] == "algorithm" for err in errors)
    raise ConfigurationError(
        code="unknown_algorithm" if unknown_algorithm else "invalid_configuration",
        message=f"Invalid {model}: " + "; ".join(f"{e['loc']}: {e['msg']}" for e in errors),
        details={"errors": errors},
    ) from exc


class LimiterConfig(BaseModel):
    """Immutable configuration of a single limiter.

    Fields left out are taken from ``settings.limiter``. Invalid values raise
    ``ConfigurationError`` (never a bare pydantic ``ValidationError``).
    """

    model_config = ConfigDict(frozen=True, validate_default=True)

    capacity: int = Field(
        default_factory=lambda: settings.limiter.capacity,
        gt=0,
        description="Maximum number of operations admitted per window.",
    )
    window_seconds: float = Field(
        default_factory=lambda: settings.limiter.window_seconds,
        gt=0,
        allow_inf_nan=False,
        description="Window duration in seconds.",
    )
    algorithm: Algorithm = Field(
        default_factory=lambda: settings.limiter.algorithm,
        description="Admission algorithm used by the limiter.",
    )
    refund_on_success: bool = Field(
        default_factory=lambda: settings.limiter.refund_on_success,
        description="Return capacity when the guarded operation succeeds.",
    )
    refund_on_failure: bool = Field(
        default_factory=lambda: settings.limiter.refund_on_failure,
        description="Return capacity when the guarded operation raises.",
    )

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            _raise_configuration_error("limiter configuration", exc)

    @field_validator("algorithm", mode="before")
    @classmethod
    def _normalize_algorithm(cls, value: Any) -> Any:
        # Accept "token_bucket", "Token-Bucket" and friends.
        if isinstance(value, str):
            return value.strip().lower().replace("_", "-")
        return value

    def with_overrides(self, **changes: Any) -> "LimiterConfig":
        """Return a re-validated copy with ``changes`` applied."""
        return LimiterConfig(**{**self.model_dump(), **changes})


class RegistryConfig(BaseModel):
    """Configuration of a keyed registry of limiters."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    limiter: LimiterConfig = Field(
        default_factory=LimiterConfig,
        description="Template applied to every per-key limiter.",
    )
    sweep_interval_seconds: float = Field(
        default_factory=lambda: settings.registry.sweep_interval_seconds,
        ge=0,
        allow_inf_nan=False,
        description="Interval of the background idle sweep (0 disables it).",
    )
    max_idle_seconds: float = Field(
        default_factory=lambda: settings.registry.max_idle_seconds,
        gt=0,
        allow_inf_nan=False,
        description="Idle time after which a key's limiter is evicted.",
    )

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            _raise_configuration_error("registry configuration", exc)
