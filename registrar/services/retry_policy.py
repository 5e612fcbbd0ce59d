"""Retry policies and backoff calculation.

This module provides:
1. Per-category retry policies (whether to retry, how many times, base delay)
2. Exponential backoff delay calculation with an upper cap
3. Optional jitter that only ever shortens a delay
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace

from registrar.core.logging import get_logger
from registrar.schemas.registration import ErrorCategory

logger = get_logger(__name__)

__all__ = [
    "DEFAULT_BACKOFF_MULTIPLIER",
    "DEFAULT_MAX_DELAY_MS",
    "DEFAULT_POLICIES",
    "RetryOverrides",
    "RetryPolicy",
    "add_jitter",
    "calculate_backoff",
    "get_policy",
]

DEFAULT_MAX_DELAY_MS = 30000
DEFAULT_BACKOFF_MULTIPLIER = 2.0


@dataclass(frozen=True)
class RetryPolicy:
    """Retry behaviour for one error category.

    ``max_retries`` counts retries after the first attempt, so an operation
    runs at most ``max_retries + 1`` times.
    """

    should_retry: bool
    max_retries: int
    base_delay_ms: int

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1 if self.should_retry else 1


@dataclass(frozen=True)
class RetryOverrides:
    """Per-call tuning of the engine's retry behaviour. ``None`` keeps the default."""

    max_retries: int | None = None
    base_delay_ms: int | None = None
    max_delay_ms: int | None = None
    backoff_multiplier: float | None = None
    jitter: bool | None = None


# ============================================================================
# Default Policies
# ============================================================================

DEFAULT_POLICIES: dict[ErrorCategory, RetryPolicy] = {
    ErrorCategory.RATE_LIMIT: RetryPolicy(should_retry=True, max_retries=5, base_delay_ms=5000),
    ErrorCategory.NETWORK_ERROR: RetryPolicy(should_retry=True, max_retries=4, base_delay_ms=2000),
    ErrorCategory.SERVER_ERROR: RetryPolicy(should_retry=True, max_retries=3, base_delay_ms=3000),
    ErrorCategory.BROWSER_ERROR: RetryPolicy(should_retry=True, max_retries=2, base_delay_ms=5000),
    # Maintenance windows rarely clear within a batch; one slow retry
    ErrorCategory.SITE_UNAVAILABLE: RetryPolicy(
        should_retry=True, max_retries=1, base_delay_ms=10000
    ),
    ErrorCategory.UNKNOWN_ERROR: RetryPolicy(should_retry=True, max_retries=1, base_delay_ms=1000),
    ErrorCategory.CLIENT_ERROR: RetryPolicy(should_retry=False, max_retries=0, base_delay_ms=0),
    ErrorCategory.REGISTRATION_CLOSED: RetryPolicy(
        should_retry=False, max_retries=0, base_delay_ms=0
    ),
}


def get_policy(category: ErrorCategory, overrides: RetryOverrides | None = None) -> RetryPolicy:
    """Look up the retry policy for a category.

    Args:
        category: Classified error category
        overrides: Optional per-call overrides for retry count and base delay

    Returns:
        RetryPolicy, with overrides applied to retryable categories only
    """
    policy = DEFAULT_POLICIES.get(category, DEFAULT_POLICIES[ErrorCategory.UNKNOWN_ERROR])

    # Guard: overrides never turn a terminal category into a retryable one
    if overrides is None or not policy.should_retry:
        return policy

    if overrides.max_retries is not None:
        policy = replace(policy, max_retries=max(0, overrides.max_retries))
    if overrides.base_delay_ms is not None:
        policy = replace(policy, base_delay_ms=max(0, overrides.base_delay_ms))
    return policy


# ============================================================================
# Backoff Calculation
# ============================================================================


def add_jitter(delay_ms: int) -> int:
    """Randomise a delay into [50%, 100%] of its value.

    Jitter only shortens the delay, so the capped maximum is never exceeded.

    Args:
        delay_ms: Deterministic delay in milliseconds

    Returns:
        Jittered delay in milliseconds

    Examples:
        >>> random.seed(42)
        >>> 500 <= add_jitter(1000) <= 1000
        True
    """
    # Guard: nothing to jitter
    if delay_ms <= 0:
        return 0
    return int(delay_ms * (0.5 + random.random() * 0.5))


def calculate_backoff(
    attempt: int,
    base_delay_ms: int,
    multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
    *,
    jitter: bool = False,
) -> int:
    """Calculate exponential backoff delay.

    Formula: delay = min(base_delay * (multiplier ^ (attempt - 1)), max_delay)

    Args:
        attempt: Number of the attempt that just failed (1-indexed)
        base_delay_ms: Delay after the first failure in milliseconds
        multiplier: Base for exponential growth
        max_delay_ms: Maximum delay in milliseconds (cap)
        jitter: Whether to randomise the delay downwards

    Returns:
        Delay in milliseconds, capped at max_delay_ms

    Raises:
        ValueError: If attempt is less than 1

    Examples:
        >>> calculate_backoff(1, 1000)
        1000
        >>> calculate_backoff(4, 1000)
        8000
        >>> calculate_backoff(10, 1000)  # Capped at max
        30000
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")

    try:
        raw_delay = base_delay_ms * (multiplier ** (attempt - 1))
    except OverflowError:
        raw_delay = max_delay_ms
    delay = max(0, int(min(raw_delay, max_delay_ms)))

    if jitter:
        return add_jitter(delay)
    return delay
