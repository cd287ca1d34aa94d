"""
Shared pytest fixtures and configuration for callguard tests.

This module provides:
- A virtual clock so breaker/limiter/backoff tests never wait on real timers
- An orchestrator wired to that clock
- A small config with fast, predictable numbers
"""

import sys
from pathlib import Path

import pytest

# Ensure callguard package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from callguard.execution.clock import ManualClock  # noqa: E402
from callguard.execution.config import (  # noqa: E402
    CircuitBreakerConfig,
    ErrorHandlerConfig,
    RateLimitConfig,
    RetryConfig,
)
from callguard.execution.orchestrator import ResilienceOrchestrator  # noqa: E402


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark all tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fast_config() -> ErrorHandlerConfig:
    """Small deterministic config: no jitter, generous limits."""
    return ErrorHandlerConfig(
        retry=RetryConfig(
            max_retries=3,
            base_delay_ms=100,
            max_delay_ms=1000,
            backoff_multiplier=2,
            jitter_enabled=False,
            timeout_ms=5000,
        ),
        circuit_breaker=CircuitBreakerConfig(
            failure_threshold=5,
            recovery_timeout_ms=1000,
            monitoring_window_ms=10000,
        ),
        rate_limit=RateLimitConfig(requests_per_second=100, burst_limit=100),
        log_errors=True,
        enable_metrics=True,
    )


@pytest.fixture
def orchestrator(fast_config: ErrorHandlerConfig, clock: ManualClock) -> ResilienceOrchestrator:
    return ResilienceOrchestrator(fast_config, clock=clock, name="test")

