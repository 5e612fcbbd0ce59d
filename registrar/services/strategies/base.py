"""Base class for site strategies.

Every strategy runs the same template:

    navigate -> analyze -> payment scan -> fill -> submit -> verify

Site strategies only override ``analyze`` (and occasionally ``prepare_url``)
to encode what they know about one operator's pages. ``analyze`` either
returns a FormPlan to fill or a finished RegistrationAttemptResult (drop-in
events, ticketed events, third-party booking systems).
"""

from __future__ import annotations

import asyncio
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar
from urllib.parse import urljoin, urlparse

from config import Settings
from registrar.core.logging import get_logger
from registrar.schemas.event import Event, FamilyProfile
from registrar.schemas.registration import (
    ErrorCategory,
    RegistrationAttemptResult,
    RegistrationMethod,
)
from registrar.services.error_classifier import classify_error
from registrar.services.payment_guard import PaymentGuard, PaymentSafetyViolation
from registrar.services.strategies import page_reader
from registrar.services.strategies.forms import (
    FormPlan,
    build_assignments,
    select_best_form,
    verify_confirmation_text,
)

logger = get_logger(__name__)

__all__ = [
    "DROP_IN_PATTERN",
    "FREE_PATTERN",
    "THIRD_PARTY_PLATFORMS",
    "AttemptState",
    "PageLoadError",
    "RegistrationClosedError",
    "SiteStrategy",
    "hostname_of",
    "match_domain",
]

THIRD_PARTY_PLATFORMS: dict[str, str] = {
    "Eventbrite": 'a[href*="eventbrite."]',
    "Facebook Events": 'a[href*="facebook.com/events"]',
    "Meetup": 'a[href*="meetup.com"]',
    "Ticketmaster": 'a[href*="ticketmaster."]',
}

DROP_IN_PATTERN = re.compile(
    r"drop.?in|no registration(?: required| needed| necessary)?|no rsvp|walk.?in|just show up"
    r"|first.?come,? first.?served",
    re.IGNORECASE,
)

FREE_PATTERN = re.compile(
    r"\bfree\b|no cost|complimentary|free admission|free event|free of charge", re.IGNORECASE
)

CLOSED_PATTERN = re.compile(
    r"sold out|registration (?:is )?(?:closed|full)|event is full|fully booked|at capacity"
    r"|wait.?list only",
    re.IGNORECASE,
)

MAILTO_SELECTOR = 'a[href^="mailto:"]'

# A scheme repeated inside the host, e.g. "https://a.orghttps://a.org/x"
_DOUBLED_PREFIX = re.compile(r"^[a-z][a-z0-9+.\-]*://[^/]*?(?=https?://)", re.IGNORECASE)


class RegistrationClosedError(Exception):
    """Raised when a page states registration is closed, full or sold out."""


@dataclass
class AttemptState:
    """Progress of one attempt; once submitted, the form must never be sent again."""

    submitted: bool = False


class PageLoadError(Exception):
    """Raised when the registration page answers with an HTTP error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def hostname_of(url: str | None) -> str | None:
    """Lower-cased hostname without a leading ``www.``; None if unparsable."""
    if not url:
        return None
    candidate = _DOUBLED_PREFIX.sub("", url.strip())
    if "://" not in candidate:
        candidate = f"https://{candidate}"
    try:
        host = urlparse(candidate).hostname
    except ValueError:
        return None
    if not host:
        return None
    host = host.lower().rstrip(".")
    return host.removeprefix("www.")


def match_domain(host: str | None, domain: str) -> bool:
    """Exact or suffix match on a label boundary (``sf.funcheap.com`` ~ ``funcheap.com``)."""
    if not host:
        return False
    domain = domain.lower().removeprefix("www.")
    return host == domain or host.endswith(f".{domain}")


class SiteStrategy(ABC):
    """Template for registering on one family of websites."""

    name: ClassVar[str] = "base"
    domains: ClassVar[tuple[str, ...]] = ()

    def __init__(self, settings: Settings, payment_guard: PaymentGuard):
        """Initialize strategy.

        Args:
            settings: Application settings (timeouts)
            payment_guard: Guard used for the DOM payment scan
        """
        self.settings = settings
        self.payment_guard = payment_guard
        self.navigation_timeout_ms = settings.registration_navigation_timeout_ms
        self.step_timeout_ms = settings.registration_step_timeout_ms
        self.attempt_timeout_seconds = settings.registration_attempt_timeout_seconds

    def can_handle(self, url: str | None) -> bool:
        host = hostname_of(url)
        return any(match_domain(host, domain) for domain in self.domains)

    # ========================================================================
    # Template
    # ========================================================================

    async def register(
        self, event: Event, page: Any, family: FamilyProfile
    ) -> RegistrationAttemptResult:
        """Run one registration attempt on ``page``.

        Returns:
            RegistrationAttemptResult for this attempt

        Raises:
            PaymentSafetyViolation: If payment is detected at any point
        """
        started = time.monotonic()
        attempt = AttemptState()
        logger.info(
            "strategy_registration_started",
            strategy=self.name,
            event_id=event.id,
            url=event.registration_url,
        )

        try:
            async with asyncio.timeout(self.attempt_timeout_seconds):
                url = self.prepare_url(event.registration_url or "")
                await self.navigate(page, url)

                outcome = await self.analyze(event, page)
                if isinstance(outcome, RegistrationAttemptResult):
                    return outcome.model_copy(update={"elapsed_ms": _elapsed_ms(started)})

                result = await self.complete_form(event, page, family, outcome, attempt)
            return result.model_copy(update={"elapsed_ms": _elapsed_ms(started)})

        except PaymentSafetyViolation:
            raise
        except RegistrationClosedError as e:
            return self.manual(
                str(e) or "Registration is closed",
                ErrorCategory.REGISTRATION_CLOSED,
                elapsed_ms=_elapsed_ms(started),
            )
        except Exception as e:
            # Guard: the form may already be registered, so this attempt must not be retried
            if attempt.submitted:
                logger.warning(
                    "strategy_outcome_unknown_after_submit",
                    strategy=self.name,
                    event_id=event.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return self.manual(
                    f"Submitted but outcome unknown: {type(e).__name__}: {e}",
                    ErrorCategory.UNKNOWN_ERROR,
                    elapsed_ms=_elapsed_ms(started),
                )
            category = classify_error(e)
            logger.warning(
                "strategy_registration_error",
                strategy=self.name,
                event_id=event.id,
                error_category=category.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return RegistrationAttemptResult.failed(
                self.name,
                f"{type(e).__name__}: {e}",
                category,
                elapsed_ms=_elapsed_ms(started),
            )

    def prepare_url(self, url: str) -> str:
        return url

    async def navigate(self, page: Any, url: str) -> None:
        """Open ``url`` and wait for the page to settle.

        Raises:
            PageLoadError: On an HTTP error status
        """
        response = await page.goto(
            url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms
        )
        status = getattr(response, "status", None) if response is not None else None
        if isinstance(status, int) and status >= 400:
            raise PageLoadError(f"Registration page returned HTTP {status}", status_code=status)
        await page_reader.wait_for_settle(page, self.step_timeout_ms)

    @abstractmethod
    async def analyze(self, event: Event, page: Any) -> FormPlan | RegistrationAttemptResult:
        """Decide how to register on the loaded page.

        Returns:
            FormPlan to fill, or a finished result when there is nothing to fill
        """

    async def complete_form(
        self,
        event: Event,
        page: Any,
        family: FamilyProfile,
        plan: FormPlan,
        attempt: AttemptState | None = None,
    ) -> RegistrationAttemptResult:
        """Payment scan, fill, submit and verify a planned form."""
        await self.payment_guard.assert_page_safe(page, event.id)

        plan.assignments = build_assignments(plan.form, family)
        self.payment_guard.validate_form_data(
            {a.field.descriptor or a.field.key: a.value for a in plan.assignments},
            event_id=event.id,
        )

        filled = await self.fill(page, plan)
        if filled == 0:
            return self.manual(
                "Registration form found but no fields could be filled",
                ErrorCategory.UNKNOWN_ERROR,
            )

        if not plan.form.has_submit:
            return self.manual(
                "Registration form has no submit button", ErrorCategory.UNKNOWN_ERROR
            )

        if attempt is not None:
            attempt.submitted = True
        await page.locator(plan.form.submit_selector).first.click()
        await page_reader.wait_for_confirmation(page, self.step_timeout_ms)

        return await self.verify(page)

    async def fill(self, page: Any, plan: FormPlan) -> int:
        """Type the planned values into the form.

        Returns:
            Number of fields filled
        """
        filled = 0
        for assignment in plan.assignments:
            locator = page.locator(assignment.field.selector)
            if assignment.field.tag == "select":
                await locator.select_option(assignment.value)
            else:
                await locator.fill(assignment.value)
            filled += 1
            logger.debug(
                "form_field_filled",
                strategy=self.name,
                field_kind=assignment.kind.value,
                field_key=assignment.field.key,
            )
        return filled

    async def verify(self, page: Any) -> RegistrationAttemptResult:
        """Read the post-submit page for confirmation."""
        text = await page.inner_text("body")
        success_elements = await page_reader.count(page, page_reader.SUCCESS_SELECTORS)
        verification = verify_confirmation_text(text, page.url, success_elements)

        if verification.success:
            return RegistrationAttemptResult.succeeded(
                self.name,
                verification.message,
                confirmation_id=verification.confirmation_id,
            )
        if verification.closed:
            return self.manual(verification.message, ErrorCategory.REGISTRATION_CLOSED)
        # Submitted but unconfirmed: a retry could register twice
        return self.manual(verification.message, ErrorCategory.UNKNOWN_ERROR)

    # ========================================================================
    # Helpers for site strategies
    # ========================================================================

    async def find_form_plan(self, page: Any, min_score: int = 0) -> FormPlan | None:
        forms = await page_reader.snapshot_forms(page)
        best = select_best_form(forms, min_score=min_score)
        if best is None:
            logger.debug("no_registration_form", strategy=self.name, forms_seen=len(forms))
            return None
        form, score = best
        logger.info(
            "registration_form_detected",
            strategy=self.name,
            form_index=form.index,
            score=score,
            fields=len(form.fields),
        )
        return FormPlan(form=form, score=score)

    async def form_or_manual(
        self,
        page: Any,
        min_score: int = 0,
        message: str = "No registration form detected on page",
    ) -> FormPlan | RegistrationAttemptResult:
        """Plan the best registration form, or defer to a human if there is none."""
        plan = await self.find_form_plan(page, min_score=min_score)
        if plan is not None:
            return plan
        return self.manual(message, ErrorCategory.UNKNOWN_ERROR, method=RegistrationMethod.UNKNOWN)

    async def detect_third_party(
        self, page: Any, platforms: tuple[str, ...] | None = None
    ) -> str | None:
        """Name of the first third-party booking platform linked from the page."""
        for platform, selector in THIRD_PARTY_PLATFORMS.items():
            if platforms is not None and platform not in platforms:
                continue
            if await page_reader.count(page, selector) > 0:
                return platform
        return None

    async def follow_link(self, page: Any, href: str) -> None:
        """Navigate to a link found on the current page."""
        target = urljoin(page.url, href)
        logger.info("following_registration_link", strategy=self.name, url=target)
        await self.navigate(page, target)

    async def ensure_open(self, page: Any) -> None:
        """Raise RegistrationClosedError if the page says registration is over."""
        text = await page_reader.page_text(page)
        match = CLOSED_PATTERN.search(text)
        if match:
            raise RegistrationClosedError(f"Registration closed: '{match.group(0)}'")

    def manual(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.REGISTRATION_CLOSED,
        method: RegistrationMethod | None = None,
        elapsed_ms: int = 0,
    ) -> RegistrationAttemptResult:
        """A non-retryable outcome that a human has to finish."""
        logger.info(
            "registration_requires_manual_action",
            strategy=self.name,
            error_category=category.value,
            reason=message,
        )
        return RegistrationAttemptResult.failed(
            self.name,
            message,
            category,
            requires_manual_action=True,
            registration_method=method,
            elapsed_ms=elapsed_ms,
        )

    def drop_in(self, message: str) -> RegistrationAttemptResult:
        """Nothing to submit: the event is open to walk-ins."""
        logger.info("registration_not_required", strategy=self.name, reason=message)
        return RegistrationAttemptResult.succeeded(
            self.name, message, registration_method=RegistrationMethod.DROP_IN
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
