"""Retry engine for registration attempts.

Wraps one registration operation with classified, exponentially backed-off
retries:

- Raised exceptions are classified and retried per their category's policy
- A returned failure is retried only if its category allows it and the
  strategy did not ask for a human
- A PaymentSafetyViolation is never retried
- On give-up the failure is recorded (in memory and, if configured, durably)
  so later batches can skip the event during its cool-down window

The engine never raises past its boundary: every outcome is a
RegistrationAttemptResult.
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter, deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from config import Settings
from registrar.core.logging import get_logger
from registrar.core.metrics import registration_failures_recorded_total, registration_retries_total
from registrar.schemas.registration import (
    ErrorCategory,
    FailureRecord,
    RegistrationAttemptResult,
    RetryStats,
)
from registrar.services.error_classifier import classify_error
from registrar.services.failure_history import FailureHistory, FailureKey
from registrar.services.payment_guard import PaymentSafetyViolation
from registrar.services.retry_policy import (
    RetryOverrides,
    RetryPolicy,
    calculate_backoff,
    get_policy,
)

logger = get_logger(__name__)

__all__ = ["FailureRecordSink", "RetryContext", "RetryEngine"]

Operation = Callable[[int], Awaitable[RegistrationAttemptResult]]
AttemptCallback = Callable[[int, RegistrationAttemptResult], Awaitable[None]]

_STATS_WINDOW = 1000


class FailureRecordSink(Protocol):
    """Durable destination for failure records."""

    async def save_failure_record(self, record: FailureRecord) -> None: ...


@dataclass
class RetryContext:
    """Identity of the operation being retried.

    ``on_attempt`` is awaited after every attempt with the attempt number and
    its result (used to append registration history).
    """

    event_id: str
    strategy_name: str
    event_title: str | None = None
    on_attempt: AttemptCallback | None = None


@dataclass(frozen=True)
class _OperationOutcome:
    success: bool
    attempts: int
    elapsed_ms: int
    error_category: ErrorCategory | None


class RetryEngine:
    """Executes operations with per-category retry policies."""

    def __init__(
        self,
        settings: Settings,
        failure_sink: FailureRecordSink | None = None,
        history: FailureHistory | None = None,
    ):
        """Initialize retry engine.

        Args:
            settings: Application settings with retry configuration
            failure_sink: Optional durable store for failure records
            history: In-memory failure history (created from settings if omitted)
        """
        self.max_delay_ms = settings.retry_max_delay_ms
        self.backoff_multiplier = settings.retry_backoff_multiplier
        self.jitter = settings.retry_jitter_enabled
        self.cooldown = timedelta(seconds=settings.failure_cooldown_seconds)
        self.retention = timedelta(hours=settings.failure_history_retention_hours)
        self.failure_sink = failure_sink
        self.history = history or FailureHistory(settings.failure_history_max_entries)
        self._outcomes: deque[_OperationOutcome] = deque(maxlen=_STATS_WINDOW)

    def get_policy(
        self, category: ErrorCategory, overrides: RetryOverrides | None = None
    ) -> RetryPolicy:
        return get_policy(category, overrides)

    # ========================================================================
    # Execution
    # ========================================================================

    async def execute_with_retry(
        self,
        operation: Operation,
        context: RetryContext,
        overrides: RetryOverrides | None = None,
    ) -> RegistrationAttemptResult:
        """Run ``operation`` until it succeeds or its retry budget is spent.

        Args:
            operation: Async callable taking the attempt number (1-indexed)
            context: Event/strategy identity and attempt callback
            overrides: Optional per-call retry tuning

        Returns:
            Result of the last attempt, with ``attempts`` set
        """
        overrides = overrides or RetryOverrides()
        multiplier = overrides.backoff_multiplier or self.backoff_multiplier
        max_delay_ms = (
            overrides.max_delay_ms if overrides.max_delay_ms is not None else self.max_delay_ms
        )
        jitter = self.jitter if overrides.jitter is None else overrides.jitter

        started = time.monotonic()
        attempt = 0

        while True:
            attempt += 1
            attempt_started = time.monotonic()

            try:
                result = await operation(attempt)
            except PaymentSafetyViolation as e:
                result = RegistrationAttemptResult.failed(
                    context.strategy_name,
                    f"Payment safety violation: {e}",
                    ErrorCategory.CLIENT_ERROR,
                    requires_manual_action=True,
                    safety_violation=True,
                    elapsed_ms=_elapsed_ms(attempt_started),
                )
            except Exception as e:
                category = classify_error(e)
                result = RegistrationAttemptResult.failed(
                    context.strategy_name,
                    f"{type(e).__name__}: {e}",
                    category,
                    elapsed_ms=_elapsed_ms(attempt_started),
                )

            result = result.model_copy(update={"attempts": attempt})
            await self._notify_attempt(context, attempt, result)

            # Guard: success ends the loop
            if result.success:
                if attempt > 1:
                    logger.info(
                        "registration_retry_succeeded",
                        event_id=context.event_id,
                        strategy=context.strategy_name,
                        attempt=attempt,
                    )
                self.history.discard(FailureKey(context.event_id, context.strategy_name))
                self._record_outcome(result, attempt, started)
                return result

            category = result.error_category or ErrorCategory.UNKNOWN_ERROR
            policy = self.get_policy(category, overrides)
            self._remember_failure(context, result, attempt, started)

            retryable = (
                policy.should_retry
                and not result.requires_manual_action
                and not result.safety_violation
            )

            if not retryable:
                logger.info(
                    "registration_permanent_failure_no_retry",
                    event_id=context.event_id,
                    strategy=context.strategy_name,
                    attempt=attempt,
                    error_category=category.value,
                    requires_manual_action=result.requires_manual_action,
                    error=result.message,
                )
                return await self._give_up(context, result, attempt, started)

            if attempt > policy.max_retries:
                logger.error(
                    "registration_all_retries_exhausted",
                    event_id=context.event_id,
                    strategy=context.strategy_name,
                    attempts=attempt,
                    error_category=category.value,
                    error=result.message,
                )
                return await self._give_up(context, result, attempt, started)

            delay_ms = calculate_backoff(
                attempt,
                policy.base_delay_ms,
                multiplier=multiplier,
                max_delay_ms=max_delay_ms,
                jitter=jitter,
            )
            registration_retries_total.labels(error_category=category.value).inc()
            logger.warning(
                "registration_retryable_failure_will_retry",
                event_id=context.event_id,
                strategy=context.strategy_name,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                error_category=category.value,
                error=result.message,
                delay_ms=delay_ms,
            )
            await asyncio.sleep(delay_ms / 1000)

    async def _notify_attempt(
        self, context: RetryContext, attempt: int, result: RegistrationAttemptResult
    ) -> None:
        if context.on_attempt is None:
            return
        try:
            await context.on_attempt(attempt, result)
        except Exception as e:
            logger.error(
                "attempt_callback_failed",
                event_id=context.event_id,
                attempt=attempt,
                error=str(e),
                exc_info=True,
            )

    def _remember_failure(
        self,
        context: RetryContext,
        result: RegistrationAttemptResult,
        attempt: int,
        started: float,
    ) -> FailureRecord:
        record = FailureRecord(
            event_id=context.event_id,
            strategy_name=context.strategy_name,
            attempt_count=attempt,
            total_elapsed_ms=_elapsed_ms(started),
            last_error_category=result.error_category or ErrorCategory.UNKNOWN_ERROR,
            last_error_message=result.message[:1000],
            last_failure_at=datetime.now(UTC),
        )
        self.history.record_failure(record)
        return record

    async def _give_up(
        self,
        context: RetryContext,
        result: RegistrationAttemptResult,
        attempt: int,
        started: float,
    ) -> RegistrationAttemptResult:
        record = self.history.get(FailureKey(context.event_id, context.strategy_name))
        if record is None:
            record = self._remember_failure(context, result, attempt, started)

        registration_failures_recorded_total.labels(
            error_category=record.last_error_category.value
        ).inc()

        if self.failure_sink is not None:
            try:
                await self.failure_sink.save_failure_record(record)
            except Exception as e:
                logger.error(
                    "failure_record_persist_failed",
                    event_id=context.event_id,
                    strategy=context.strategy_name,
                    error=str(e),
                )

        self._record_outcome(result, attempt, started)
        return result

    # ========================================================================
    # Skip logic and history
    # ========================================================================

    def should_retry_event(
        self, event_id: str, strategy_name: str, now: datetime | None = None
    ) -> bool:
        """Decide whether a new registration cycle may start for this event.

        Returns:
            False if a failure was recorded inside the cool-down window
        """
        now = now or datetime.now(UTC)
        key = FailureKey(event_id, strategy_name)

        if self.history.is_cooling_down(key, now, self.cooldown):
            record = self.history.get(key)
            logger.info(
                "registration_skipped_recent_failure",
                event_id=event_id,
                strategy=strategy_name,
                last_failure_at=record.last_failure_at.isoformat() if record else None,
                cooldown_seconds=self.cooldown.total_seconds(),
            )
            return False
        return True

    def hydrate(self, records: Iterable[FailureRecord]) -> int:
        """Load durable failure records into the in-memory history."""
        loaded = self.history.load(records)
        logger.debug("failure_history_hydrated", loaded=loaded, total=len(self.history))
        return loaded

    def cleanup_history(self, max_age_hours: float | None = None) -> int:
        """Evict failure records older than the retention window.

        Args:
            max_age_hours: Override for the configured retention window

        Returns:
            Number of records evicted
        """
        retention = timedelta(hours=max_age_hours) if max_age_hours is not None else self.retention
        cutoff = datetime.now(UTC) - retention
        evicted = self.history.evict_older_than(cutoff)
        if evicted:
            logger.info("failure_history_cleaned", evicted=evicted, remaining=len(self.history))
        return evicted

    # ========================================================================
    # Statistics
    # ========================================================================

    def _record_outcome(
        self, result: RegistrationAttemptResult, attempts: int, started: float
    ) -> None:
        self._outcomes.append(
            _OperationOutcome(
                success=result.success,
                attempts=attempts,
                elapsed_ms=_elapsed_ms(started),
                error_category=result.error_category,
            )
        )

    def get_retry_stats(self) -> RetryStats:
        """Aggregate statistics over recent operations."""
        outcomes = list(self._outcomes)
        # Guard: nothing recorded yet
        if not outcomes:
            return RetryStats()

        successes = [o for o in outcomes if o.success]
        failures = [o for o in outcomes if not o.success]
        error_types = Counter(
            o.error_category.value for o in failures if o.error_category is not None
        )

        return RetryStats(
            total_operations=len(outcomes),
            successful_operations=len(successes),
            failed_operations=len(failures),
            average_attempts=sum(o.attempts for o in outcomes) / len(outcomes),
            average_success_time_ms=(
                sum(o.elapsed_ms for o in successes) / len(successes) if successes else 0.0
            ),
            common_error_types=dict(error_types.most_common()),
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
