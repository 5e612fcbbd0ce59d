"""Unit tests for retry policies and backoff calculation."""

from unittest.mock import patch

import pytest

from registrar.schemas.registration import ErrorCategory
from registrar.services.retry_policy import (
    DEFAULT_POLICIES,
    RetryOverrides,
    add_jitter,
    calculate_backoff,
    get_policy,
)

# ============================================================================
# Policy Lookup Tests
# ============================================================================


class TestPolicyLookup:
    """Every category has a policy; terminal categories never retry."""

    def test_every_category_has_a_policy(self):
        assert set(DEFAULT_POLICIES) == set(ErrorCategory)

    @pytest.mark.parametrize(
        "category", [ErrorCategory.CLIENT_ERROR, ErrorCategory.REGISTRATION_CLOSED]
    )
    def test_terminal_categories_never_retry(self, category):
        policy = get_policy(category)
        assert policy.should_retry is False
        assert policy.max_retries == 0
        assert policy.max_attempts == 1

    @pytest.mark.parametrize(
        ("category", "max_retries", "base_delay_ms"),
        [
            (ErrorCategory.RATE_LIMIT, 5, 5000),
            (ErrorCategory.NETWORK_ERROR, 4, 2000),
            (ErrorCategory.SERVER_ERROR, 3, 3000),
            (ErrorCategory.BROWSER_ERROR, 2, 5000),
            (ErrorCategory.SITE_UNAVAILABLE, 1, 10000),
            (ErrorCategory.UNKNOWN_ERROR, 1, 1000),
        ],
    )
    def test_retryable_defaults(self, category, max_retries, base_delay_ms):
        policy = get_policy(category)
        assert policy.should_retry is True
        assert policy.max_retries == max_retries
        assert policy.base_delay_ms == base_delay_ms

    def test_overrides_apply_to_retryable_categories(self):
        policy = get_policy(
            ErrorCategory.NETWORK_ERROR, RetryOverrides(max_retries=1, base_delay_ms=250)
        )
        assert policy.max_retries == 1
        assert policy.base_delay_ms == 250

    def test_overrides_never_enable_terminal_retries(self):
        policy = get_policy(ErrorCategory.CLIENT_ERROR, RetryOverrides(max_retries=5))
        assert policy.should_retry is False
        assert policy.max_retries == 0


# ============================================================================
# Exponential Backoff Tests
# ============================================================================


class TestExponentialBackoff:
    """Test exponential backoff calculation."""

    def test_documented_sequence(self):
        """baseDelay 1000 gives 1000, 2000, 4000, 8000 for attempts 1..4."""
        assert [calculate_backoff(attempt, 1000) for attempt in range(1, 5)] == [
            1000,
            2000,
            4000,
            8000,
        ]

    def test_first_delay_equals_base_delay(self):
        assert calculate_backoff(1, 3000) == 3000

    def test_respects_max_delay(self):
        assert calculate_backoff(10, 1000, max_delay_ms=30000) == 30000

    def test_monotonic_up_to_cap(self):
        delays = [calculate_backoff(attempt, 700, max_delay_ms=20000) for attempt in range(1, 15)]
        assert all(later >= earlier for earlier, later in zip(delays, delays[1:], strict=False))
        assert max(delays) == 20000

    def test_higher_multiplier(self):
        assert calculate_backoff(3, 1000, multiplier=3.0) == 9000

    def test_huge_attempt_does_not_overflow(self):
        assert calculate_backoff(5000, 1000, max_delay_ms=30000) == 30000

    def test_attempt_must_be_positive(self):
        with pytest.raises(ValueError, match="attempt must be >= 1"):
            calculate_backoff(0, 1000)


class TestJitter:
    """Jitter only ever shortens a delay."""

    def test_jitter_range(self):
        with patch("registrar.services.retry_policy.random.random", return_value=0.0):
            assert add_jitter(1000) == 500
        with patch("registrar.services.retry_policy.random.random", return_value=1.0):
            assert add_jitter(1000) == 1000

    def test_jitter_of_zero(self):
        assert add_jitter(0) == 0

    def test_jittered_backoff_stays_under_cap(self):
        with patch("registrar.services.retry_policy.random.random", return_value=0.5):
            assert calculate_backoff(10, 1000, max_delay_ms=30000, jitter=True) == 22500
