"""Registration orchestrator.

Entry point for automated registration. For one approved event it:

1. Refuses anything that is not explicitly free, before any browser work
2. Picks the site strategy for the registration URL
3. Skips events still cooling down from a recent failure
4. Runs the strategy through the retry engine, one scoped page per attempt
5. Persists one history row per attempt and moves the event to its
   terminal status with a conditional update

``registering`` is never written to the store: a crash mid-attempt leaves
the event ``approved`` so the next batch picks it up again.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from config import Settings
from registrar.core.logging import get_logger
from registrar.core.metrics import (
    registration_attempts_total,
    registration_batch_events_total,
    registration_duration_seconds,
    registration_results_total,
    registration_skipped_total,
    registrations_in_flight,
)
from registrar.schemas.event import (
    Child,
    Event,
    EventStatus,
    FamilyProfile,
    validate_transition,
)
from registrar.schemas.registration import (
    BatchSummary,
    ErrorCategory,
    FailureRecord,
    RegistrationAttemptResult,
    RetryStats,
)
from registrar.services.error_classifier import classify_error
from registrar.services.payment_guard import PaymentGuard, PaymentSafetyViolation
from registrar.services.retry_engine import RetryContext, RetryEngine
from registrar.services.strategies.base import SiteStrategy
from registrar.services.strategies.registry import StrategyRegistry

logger = get_logger(__name__)

__all__ = [
    "PageProvider",
    "RegistrationOrchestrator",
    "RegistrationStore",
    "SKIP_ALREADY_IN_FLIGHT",
    "SKIP_NOT_APPROVED",
    "SKIP_RECENT_FAILURE",
    "default_family_profile",
]

ORCHESTRATOR_NAME = "orchestrator"

SKIP_RECENT_FAILURE = "recent_failure"
SKIP_ALREADY_IN_FLIGHT = "already_in_flight"
SKIP_NOT_APPROVED = "not_approved"


class RegistrationStore(Protocol):
    """Persistence the orchestrator depends on."""

    async def list_events_by_status(self, status: EventStatus) -> list[Event]: ...

    async def get_event(self, event_id: str) -> Event | None: ...

    async def update_event_status(
        self,
        event_id: str,
        expected: EventStatus,
        new: EventStatus,
        *,
        confirmation_id: str | None = None,
        message: str | None = None,
    ) -> bool: ...

    async def append_registration_history(
        self, event_id: str, attempt_number: int, result: RegistrationAttemptResult
    ) -> None: ...

    async def save_failure_record(self, record: FailureRecord) -> None: ...

    async def list_failure_records(self, since: datetime) -> list[FailureRecord]: ...


class PageProvider(Protocol):
    """Hands out browser pages that are closed when the context exits."""

    def acquire_page(self) -> AbstractAsyncContextManager[Any]: ...


def default_family_profile(settings: Settings) -> FamilyProfile:
    """Build the configured family profile.

    ``family_children`` is a comma separated list of ``name:age`` pairs,
    e.g. ``"Ada:6,Max:4"``. Malformed entries are ignored.
    """
    children: list[Child] = []
    for entry in settings.family_children.split(","):
        name, _, age = entry.strip().partition(":")
        if not name or not age.strip().isdigit():
            continue
        children.append(Child(name=name.strip(), age=int(age)))

    return FamilyProfile(
        parent_name=settings.family_parent_name,
        parent_email=settings.family_parent_email,
        secondary_parent_name=settings.family_secondary_parent_name,
        secondary_parent_email=settings.family_secondary_parent_email,
        phone=settings.family_phone,
        children=children,
    )


class RegistrationOrchestrator:
    """Drives approved events through registration.

    Usage:
        orchestrator = RegistrationOrchestrator(
            settings, store, browser_pool, registry, retry_engine, payment_guard
        )
        summary = await orchestrator.process_approved_events()
    """

    def __init__(
        self,
        settings: Settings,
        store: RegistrationStore,
        page_provider: PageProvider,
        registry: StrategyRegistry,
        retry_engine: RetryEngine,
        payment_guard: PaymentGuard,
    ):
        """Initialize orchestrator.

        Args:
            settings: Application settings
            store: Event, history and failure record persistence
            page_provider: Source of scoped browser pages (usually BrowserPool)
            registry: Strategy registry for URL dispatch
            retry_engine: Retry engine wrapping each strategy run
            payment_guard: Guard used for the cost pre-flight
        """
        self.settings = settings
        self.store = store
        self.page_provider = page_provider
        self.registry = registry
        self.retry_engine = retry_engine
        self.payment_guard = payment_guard

        self.max_concurrency = settings.registration_max_concurrency
        # Backstop; strategies enforce the attempt timeout themselves
        self.attempt_timeout = (
            settings.registration_attempt_timeout_seconds
            + settings.registration_step_timeout_ms / 1000
        )
        self.default_family = default_family_profile(settings)

        self._in_flight: set[str] = set()
        self._in_flight_lock = asyncio.Lock()

    # ========================================================================
    # Single event
    # ========================================================================

    async def register_for_event(self, event: Event) -> RegistrationAttemptResult:
        """Register the family for one approved, free event.

        Never raises: unexpected errors are classified and returned, and the
        event is left ``approved``.

        Args:
            event: Event to register for

        Returns:
            Final RegistrationAttemptResult
        """
        try:
            return await self._register(event)
        except Exception as e:
            category = classify_error(e)
            logger.error(
                "registration_unexpected_error",
                event_id=event.id,
                error=str(e),
                error_type=type(e).__name__,
                error_category=category.value,
                exc_info=True,
            )
            return RegistrationAttemptResult.failed(
                ORCHESTRATOR_NAME,
                f"Unexpected error: {type(e).__name__}: {e}",
                ErrorCategory.UNKNOWN_ERROR,
            )

    async def _register(self, event: Event) -> RegistrationAttemptResult:
        # Cost pre-flight: no browser work for anything but an explicit zero cost
        try:
            self.payment_guard.assert_free(event)
        except PaymentSafetyViolation as e:
            return await self._reject_paid_event(event, e)

        # Guard: only approved events may enter registering
        if event.status != EventStatus.APPROVED:
            logger.warning(
                "registration_refused_not_approved",
                event_id=event.id,
                status=event.status.value,
            )
            registration_skipped_total.labels(reason=SKIP_NOT_APPROVED).inc()
            return RegistrationAttemptResult.failed(
                ORCHESTRATOR_NAME,
                f"Event is {event.status.value}, only approved events can be registered",
                ErrorCategory.CLIENT_ERROR,
                skip_reason=SKIP_NOT_APPROVED,
                attempts=0,
            )

        # Guard: nothing to navigate to
        if not event.registration_url:
            result = RegistrationAttemptResult.failed(
                ORCHESTRATOR_NAME,
                "Event has no registration URL",
                ErrorCategory.CLIENT_ERROR,
                requires_manual_action=True,
            )
            await self._append_history(event.id, 1, result)
            await self._finalize(event, result)
            return result

        strategy = self.registry.get_strategy_for_event(event)

        if not await self._claim(event.id):
            logger.info("registration_already_in_flight", event_id=event.id)
            registration_skipped_total.labels(reason=SKIP_ALREADY_IN_FLIGHT).inc()
            return self._skipped(strategy, SKIP_ALREADY_IN_FLIGHT, "Registration already running")

        try:
            if not self.retry_engine.should_retry_event(event.id, strategy.name):
                registration_skipped_total.labels(reason=SKIP_RECENT_FAILURE).inc()
                return self._skipped(
                    strategy, SKIP_RECENT_FAILURE, "Skipped: event failed recently"
                )

            validate_transition(event.status, EventStatus.REGISTERING)
            # In memory only; the store keeps "approved" until the outcome is known
            registering = event.model_copy(update={"status": EventStatus.REGISTERING})

            result = await self._run_strategy(registering, strategy)
            await self._finalize(registering, result)
            return result
        finally:
            await self._release(event.id)

    async def _run_strategy(
        self, event: Event, strategy: SiteStrategy
    ) -> RegistrationAttemptResult:
        family = event.family_profile or self.default_family
        started = time.monotonic()

        logger.info(
            "registration_started",
            event_id=event.id,
            title=event.title,
            strategy=strategy.name,
            url=event.registration_url,
        )

        async def attempt_once(attempt: int) -> RegistrationAttemptResult:
            async with self.page_provider.acquire_page() as page:
                return await asyncio.wait_for(
                    strategy.register(event, page, family), timeout=self.attempt_timeout
                )

        async def on_attempt(attempt: int, result: RegistrationAttemptResult) -> None:
            outcome = "success" if result.success else str(result.error_category or "unknown")
            registration_attempts_total.labels(strategy=strategy.name, outcome=outcome).inc()
            await self._append_history(event.id, attempt, result)

        registrations_in_flight.inc()
        try:
            result = await self.retry_engine.execute_with_retry(
                attempt_once,
                RetryContext(
                    event_id=event.id,
                    strategy_name=strategy.name,
                    event_title=event.title,
                    on_attempt=on_attempt,
                ),
            )
        finally:
            registrations_in_flight.dec()
            registration_duration_seconds.labels(strategy=strategy.name).observe(
                time.monotonic() - started
            )

        return result

    async def _reject_paid_event(
        self, event: Event, violation: PaymentSafetyViolation
    ) -> RegistrationAttemptResult:
        result = RegistrationAttemptResult.failed(
            ORCHESTRATOR_NAME,
            f"Payment safety violation: {violation}",
            ErrorCategory.CLIENT_ERROR,
            requires_manual_action=True,
            safety_violation=True,
        )
        if event.status == EventStatus.APPROVED:
            await self._append_history(event.id, 1, result)
            await self._finalize(event, result)
        else:
            registration_results_total.labels(status="refused").inc()
        return result

    async def _finalize(self, event: Event, result: RegistrationAttemptResult) -> None:
        """Move the event to its terminal status.

        The update only applies while the stored row is still ``approved``,
        so a concurrent worker can never overwrite a finished registration.
        """
        if result.success:
            target = EventStatus.REGISTERED
        elif result.requires_manual_action or result.safety_violation:
            target = EventStatus.MANUAL_REQUIRED
        else:
            target = EventStatus.FAILED

        validate_transition(event.status, target)

        updated = await self.store.update_event_status(
            event.id,
            EventStatus.APPROVED,
            target,
            confirmation_id=result.confirmation_id,
            message=result.message,
        )
        registration_results_total.labels(status=target.value).inc()

        if not updated:
            logger.warning(
                "event_status_update_conflict",
                event_id=event.id,
                target_status=target.value,
            )
            return

        log = logger.info if result.success else logger.warning
        log(
            "registration_finished",
            event_id=event.id,
            status=target.value,
            strategy=result.strategy_name,
            attempts=result.attempts,
            confirmation_id=result.confirmation_id,
            error_category=result.error_category.value if result.error_category else None,
            reason=result.message,
        )

    async def _append_history(
        self, event_id: str, attempt_number: int, result: RegistrationAttemptResult
    ) -> None:
        try:
            await self.store.append_registration_history(event_id, attempt_number, result)
        except Exception as e:
            logger.error(
                "registration_history_append_failed",
                event_id=event_id,
                attempt=attempt_number,
                error=str(e),
            )

    async def _claim(self, event_id: str) -> bool:
        async with self._in_flight_lock:
            if event_id in self._in_flight:
                return False
            self._in_flight.add(event_id)
            return True

    async def _release(self, event_id: str) -> None:
        async with self._in_flight_lock:
            self._in_flight.discard(event_id)

    def _skipped(
        self, strategy: SiteStrategy, reason: str, message: str
    ) -> RegistrationAttemptResult:
        return RegistrationAttemptResult.failed(
            strategy.name,
            message,
            ErrorCategory.UNKNOWN_ERROR,
            skip_reason=reason,
            attempts=0,
        )

    # ========================================================================
    # Batch
    # ========================================================================

    async def process_approved_events(self) -> BatchSummary:
        """Register every approved event with bounded concurrency.

        Returns:
            BatchSummary with counts per outcome
        """
        await self._refresh_failure_history()

        events = await self.store.list_events_by_status(EventStatus.APPROVED)
        summary = BatchSummary()

        # Guard: nothing to do
        if not events:
            logger.debug("no_approved_events")
            return summary

        logger.info(
            "registration_batch_started",
            events=len(events),
            max_concurrency=self.max_concurrency,
        )
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(event: Event) -> RegistrationAttemptResult:
            async with semaphore:
                return await self.register_for_event(event)

        results = await asyncio.gather(*(run(event) for event in events))

        for result in results:
            registration_batch_events_total.inc()
            if result.skip_reason:
                summary.skipped += 1
                continue
            summary.processed += 1
            if result.success:
                summary.registered += 1
            elif result.requires_manual_action or result.safety_violation:
                summary.manual_required += 1
            else:
                summary.failed += 1

        logger.info("registration_batch_completed", **summary.model_dump())
        return summary

    async def _refresh_failure_history(self) -> None:
        since = datetime.now(UTC) - timedelta(seconds=self.settings.failure_cooldown_seconds)
        try:
            records = await self.store.list_failure_records(since)
            self.retry_engine.hydrate(records)
        except Exception as e:
            logger.error("failure_history_hydrate_failed", error=str(e))
        self.retry_engine.cleanup_history()

    def get_retry_stats(self) -> RetryStats:
        return self.retry_engine.get_retry_stats()
