"""Pytest configuration and fixtures shared across all test modules.

Environment variables are pinned before any quotaguard import so settings
defaults are predictable regardless of the developer's shell.
"""

import os
from unittest.mock import Mock

import pytest

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["LIMITER_CAPACITY"] = "100"
os.environ["LIMITER_WINDOW_SECONDS"] = "60"
os.environ["LIMITER_ALGORITHM"] = "sliding-window"
os.environ["REGISTRY_SWEEP_INTERVAL_SECONDS"] = "60"
os.environ["REGISTRY_MAX_IDLE_SECONDS"] = "3600"


@pytest.fixture
def clock() -> Mock:
    """Deterministic clock: set ``clock.return_value`` to move time."""
    return Mock(return_value=0.0)
