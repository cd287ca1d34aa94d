"""Exponential backoff with jitter.

Delay = min(base_delay_ms * (backoff_multiplier ** attempt), max_delay_ms)

With jitter enabled a uniform offset in ±25% of that value is added and
the result clamped at zero, so callers retrying against the same failing
service do not synchronise.

Example:
    >>> from callguard.execution.config import RetryConfig
    >>> config = RetryConfig(base_delay_ms=100, max_delay_ms=1000, jitter_enabled=False)
    >>> [compute_delay(a, config) for a in range(5)]
    [100.0, 200.0, 400.0, 800.0, 1000.0]
"""

from __future__ import annotations

import random
from typing import Protocol

from .config import RetryConfig

JITTER_RANGE = 0.25


class UniformSource(Protocol):
    def uniform(self, a: float, b: float) -> float: ...


def compute_delay(
    attempt: int,
    config: RetryConfig,
    rng: UniformSource | None = None,
) -> float:
    """Delay in milliseconds before the retry following ``attempt``.

    Args:
        attempt: Zero-based index of the attempt that just failed
        config: Retry settings
        rng: Source of randomness (defaults to the ``random`` module)
    """
    delay = float(min(config.base_delay_ms * (config.backoff_multiplier ** attempt), config.max_delay_ms))

    if config.jitter_enabled:
        source = rng or random
        jitter_amount = delay * JITTER_RANGE
        delay += source.uniform(-jitter_amount, jitter_amount)
        delay = max(0.0, delay)

    return delay


__all__ = ["compute_delay", "JITTER_RANGE"]
