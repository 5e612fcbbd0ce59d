"""Payment safety guard.

Nothing in this system may ever pay for anything. The guard enforces that in
two places:

1. Before any navigation: the event's declared cost must be exactly zero.
2. After a registration form renders: the live page must show no payment
   indicators (card inputs, payment keywords, processor widgets, prices).

A tripped guard raises PaymentSafetyViolation. Callers treat it as a
permanent, non-retryable stop that needs a human.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, NoReturn

from registrar.core.logging import get_logger
from registrar.core.metrics import payment_guard_violations_total
from registrar.schemas.event import Event

logger = get_logger(__name__)

__all__ = [
    "PAYMENT_INPUT_SELECTORS",
    "PAYMENT_KEYWORDS",
    "PRICE_SELECTORS",
    "PROCESSOR_SIGNATURES",
    "PaymentGuard",
    "PaymentIndicator",
    "PaymentSafetyViolation",
    "is_sensitive_field",
]

PAYMENT_KEYWORDS = (
    "credit card",
    "debit card",
    "card number",
    "payment",
    "checkout",
    "billing",
    "purchase",
    "visa",
    "mastercard",
    "amex",
    "paypal",
    "stripe",
    "cvv",
    "cvc",
    "security code",
    "expiry",
    "expiration date",
)

_KEYWORD_PATTERNS = tuple(
    (keyword, re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE))
    for keyword in PAYMENT_KEYWORDS
)

PAYMENT_INPUT_SELECTORS = (
    'input[name*="card" i]',
    'input[name*="credit" i]',
    'input[name*="payment" i]',
    'input[name*="cvv" i]',
    'input[name*="cvc" i]',
    'input[name*="ccnum" i]',
    'input[name^="cc-" i]',
    'input[id*="card" i]',
    'input[id*="payment" i]',
    'input[id*="cvv" i]',
    'input[placeholder*="card" i]',
    'input[placeholder*="payment" i]',
    'input[placeholder*="cvv" i]',
    'input[autocomplete^="cc-" i]',
    ".payment-form",
    ".credit-card",
    '[class*="checkout" i]',
)

PROCESSOR_SIGNATURES: dict[str, str] = {
    "stripe": 'iframe[src*="stripe" i], .StripeElement, [data-stripe]',
    "paypal": 'iframe[src*="paypal" i], #paypal-button-container, [data-paypal-button]',
    "square": 'iframe[src*="squareup" i], #sq-card-number',
    "braintree": 'iframe[src*="braintree" i], [data-braintree-name]',
}

PRICE_SELECTORS = (
    ".price",
    ".cost",
    ".amount",
    ".total",
    ".fee",
    '[class*="price"]',
    '[class*="cost"]',
)

PRICE_PATTERN = re.compile(r"\$\s?(\d{1,3}(?:,\d{3})*(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)")

# Never filled automatically, whatever the form asks for
_SENSITIVE_FIELD_PATTERN = re.compile(
    r"card|credit|payment|cvv|cvc|ssn|social.?security|account.?number|routing|iban",
    re.IGNORECASE,
)

_MAX_PRICE_ELEMENTS = 20
_VIOLATION_LOG_LIMIT = 100
_VIOLATION_LOG_KEEP = 50


def is_sensitive_field(descriptor: str) -> bool:
    """Whether a form field name/id/label looks like payment or identity data."""
    return bool(_SENSITIVE_FIELD_PATTERN.search(descriptor))


@dataclass(frozen=True)
class PaymentIndicator:
    """A single reason a page was judged unsafe."""

    kind: str
    detail: str


class PaymentSafetyViolation(Exception):
    """Raised when an event or page would require payment."""

    def __init__(
        self,
        message: str,
        violation_type: str,
        indicators: list[PaymentIndicator] | None = None,
    ):
        super().__init__(message)
        self.violation_type = violation_type
        self.indicators = indicators or []


@dataclass
class _Violation:
    violation_type: str
    event_id: str | None
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class PaymentGuard:
    """Cost pre-flight and payment indicator scanning."""

    def __init__(self) -> None:
        self._violations: list[_Violation] = []

    # ------------------------------------------------------------------
    # Cost pre-flight
    # ------------------------------------------------------------------

    def assert_free(self, event: Event) -> None:
        """Fail fast unless the event's declared cost is exactly zero.

        Args:
            event: Event about to be registered

        Raises:
            PaymentSafetyViolation: If cost is missing, negative, or non-zero
        """
        if event.cost is None:
            self._raise(
                "missing_cost",
                f"Event '{event.title}' has no declared cost; refusing to register",
                event_id=event.id,
            )
        if event.cost != 0:
            self._raise(
                "non_free_event",
                f"Event '{event.title}' costs {event.cost}; only free events are registered",
                event_id=event.id,
                details={"cost": event.cost},
            )

    # ------------------------------------------------------------------
    # DOM scan
    # ------------------------------------------------------------------

    async def inspect_page(self, page: Any) -> list[PaymentIndicator]:
        """Collect every payment indicator visible on the page.

        Args:
            page: Playwright page (or compatible object)

        Returns:
            List of indicators, empty when the page looks safe
        """
        indicators: list[PaymentIndicator] = []

        body_text = await page.inner_text("body")
        for keyword, pattern in _KEYWORD_PATTERNS:
            if pattern.search(body_text):
                indicators.append(PaymentIndicator("keyword", keyword))

        for selector in PAYMENT_INPUT_SELECTORS:
            if await page.locator(selector).count() > 0:
                indicators.append(PaymentIndicator("payment_field", selector))

        for processor, selector in PROCESSOR_SIGNATURES.items():
            if await page.locator(selector).count() > 0:
                indicators.append(PaymentIndicator("payment_processor", processor))

        for selector in PRICE_SELECTORS:
            locator = page.locator(selector)
            count = min(await locator.count(), _MAX_PRICE_ELEMENTS)
            for index in range(count):
                text = await locator.nth(index).inner_text()
                for match in PRICE_PATTERN.finditer(text):
                    if float(match.group(1).replace(",", "")) > 0:
                        indicators.append(PaymentIndicator("price", match.group(0)))

        return indicators

    async def scan_page_for_payment_indicators(self, page: Any) -> bool:
        """Check a rendered page for payment indicators.

        Returns:
            True if payment is (or may be) required. A page that cannot be
            inspected counts as unsafe.
        """
        try:
            indicators = await self.inspect_page(page)
        except Exception as e:
            logger.error("payment_scan_failed", error=str(e), error_type=type(e).__name__)
            return True

        if indicators:
            logger.warning(
                "payment_indicators_found",
                indicators=[f"{i.kind}:{i.detail}" for i in indicators],
            )
        return bool(indicators)

    async def assert_page_safe(self, page: Any, event_id: str | None = None) -> None:
        """Raise unless the rendered page is free of payment indicators.

        Raises:
            PaymentSafetyViolation: If indicators are found or the scan fails
        """
        try:
            indicators = await self.inspect_page(page)
        except Exception as e:
            self._raise(
                "scan_failed",
                f"Could not verify the page is payment-free: {e}",
                event_id=event_id,
            )

        if indicators:
            self._raise(
                "payment_page_detected",
                "Payment required on registration page: "
                + ", ".join(f"{i.kind} '{i.detail}'" for i in indicators[:5]),
                event_id=event_id,
                details={"indicators": [f"{i.kind}:{i.detail}" for i in indicators]},
                indicators=indicators,
            )

    # ------------------------------------------------------------------
    # Form data
    # ------------------------------------------------------------------

    def validate_form_data(self, fields: Mapping[str, str], event_id: str | None = None) -> None:
        """Refuse to fill any field that looks like payment or identity data.

        Args:
            fields: Mapping of field descriptor (name/id/label) to value

        Raises:
            PaymentSafetyViolation: If any descriptor is sensitive
        """
        sensitive = [descriptor for descriptor in fields if is_sensitive_field(descriptor)]
        if sensitive:
            self._raise(
                "sensitive_field",
                f"Refusing to fill sensitive fields: {', '.join(sensitive)}",
                event_id=event_id,
                details={"fields": sensitive},
            )

    # ------------------------------------------------------------------
    # Violation log
    # ------------------------------------------------------------------

    def record_violation(
        self,
        violation_type: str,
        message: str,
        event_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log and remember a violation."""
        self._violations.append(_Violation(violation_type, event_id, message, details or {}))
        if len(self._violations) > _VIOLATION_LOG_LIMIT:
            self._violations = self._violations[-_VIOLATION_LOG_KEEP:]

        payment_guard_violations_total.labels(violation_type=violation_type).inc()
        logger.error(
            "payment_safety_violation",
            violation_type=violation_type,
            event_id=event_id,
            message=message,
            **(details or {}),
        )

    def get_violation_summary(self) -> dict[str, Any]:
        """Summarise recorded violations.

        Returns:
            Dict with ``total``, ``by_type`` counts and the 10 most ``recent``
        """
        return {
            "total": len(self._violations),
            "by_type": dict(Counter(v.violation_type for v in self._violations)),
            "recent": [
                {
                    "type": v.violation_type,
                    "event_id": v.event_id,
                    "message": v.message,
                    "timestamp": v.timestamp.isoformat(),
                }
                for v in self._violations[-10:]
            ],
        }

    def clear_violations(self) -> None:
        self._violations.clear()

    def _raise(
        self,
        violation_type: str,
        message: str,
        *,
        event_id: str | None,
        details: dict[str, Any] | None = None,
        indicators: list[PaymentIndicator] | None = None,
    ) -> NoReturn:
        self.record_violation(violation_type, message, event_id=event_id, details=details)
        raise PaymentSafetyViolation(message, violation_type, indicators)
