"""Error classification for registration failures.

Maps any failure (an exception or a bare error message) onto the closed
ErrorCategory set that drives retry decisions. Classification is
deterministic and total: it never raises, and anything unrecognised is
UNKNOWN_ERROR.

Evaluation order:
1. Exception type (timeouts, browser crashes, closed registrations)
2. HTTP status metadata carried on the exception (``status_code``/``status``)
3. Message keywords, first matching group wins
"""

from __future__ import annotations

import re
import traceback

from registrar.core.logging import get_logger
from registrar.schemas.registration import ErrorCategory

logger = get_logger(__name__)

__all__ = [
    "RETRYABLE_CATEGORIES",
    "classify_error",
    "classify_message",
    "classify_status_code",
    "get_error_context",
    "is_retryable_category",
]


RETRYABLE_CATEGORIES = frozenset(
    {
        ErrorCategory.NETWORK_ERROR,
        ErrorCategory.SERVER_ERROR,
        ErrorCategory.RATE_LIMIT,
        ErrorCategory.BROWSER_ERROR,
        ErrorCategory.SITE_UNAVAILABLE,
        ErrorCategory.UNKNOWN_ERROR,
    }
)

_BROWSER_EXCEPTION_NAMES = frozenset(
    {
        "BrowserCrashError",
        "TargetClosedError",
        "BrowserContextClosedError",
        "PageClosedError",
    }
)

# Keyword groups in priority order. Patterns are matched case-insensitively
# against "<ExceptionType>: <message>".
_KEYWORD_RULES: tuple[tuple[ErrorCategory, re.Pattern[str]], ...] = (
    (
        ErrorCategory.NETWORK_ERROR,
        re.compile(
            r"timeout|timed out|econnreset|econnrefused|enotfound|"
            r"\bnetwork\b|\bconnection\b|net::err_",
            re.IGNORECASE,
        ),
    ),
    (
        ErrorCategory.SERVER_ERROR,
        re.compile(r"\b50[0-4]\b|server error", re.IGNORECASE),
    ),
    (
        ErrorCategory.RATE_LIMIT,
        re.compile(r"\b429\b|rate.?limit|too many requests", re.IGNORECASE),
    ),
    (
        ErrorCategory.BROWSER_ERROR,
        re.compile(
            r"crash|detached|target closed|\bbrowser\b|navigation failed|page closed",
            re.IGNORECASE,
        ),
    ),
    (
        ErrorCategory.SITE_UNAVAILABLE,
        re.compile(r"maintenance|unavailable|temporarily|\bdown\b", re.IGNORECASE),
    ),
    (
        ErrorCategory.CLIENT_ERROR,
        re.compile(
            r"\b40[0134]\b|bad request|unauthorized|forbidden|not found",
            re.IGNORECASE,
        ),
    ),
    (
        ErrorCategory.REGISTRATION_CLOSED,
        re.compile(
            r"sold out|\bclosed\b|\bfull\b|fully booked|expired|wait.?list|no longer available",
            re.IGNORECASE,
        ),
    ),
)


def is_retryable_category(category: ErrorCategory) -> bool:
    """Whether failures in this category are worth another attempt at all."""
    return category in RETRYABLE_CATEGORIES


def classify_status_code(status_code: int) -> ErrorCategory | None:
    """Classify an HTTP status code.

    Args:
        status_code: HTTP status code from a response or exception

    Returns:
        ErrorCategory, or None for codes that carry no failure signal
    """
    if status_code == 429:
        return ErrorCategory.RATE_LIMIT
    if 500 <= status_code <= 599:
        return ErrorCategory.SERVER_ERROR
    if 400 <= status_code <= 499:
        return ErrorCategory.CLIENT_ERROR
    return None


def classify_message(message: str) -> ErrorCategory:
    """Classify free text by keyword groups.

    Args:
        message: Error message (any case)

    Returns:
        First matching ErrorCategory, UNKNOWN_ERROR when nothing matches
    """
    for category, pattern in _KEYWORD_RULES:
        if pattern.search(message):
            return category
    return ErrorCategory.UNKNOWN_ERROR


def _classify_exception_type(error: BaseException) -> ErrorCategory | None:
    exc_type_name = type(error).__name__

    if exc_type_name in _BROWSER_EXCEPTION_NAMES:
        return ErrorCategory.BROWSER_ERROR

    if exc_type_name == "RegistrationClosedError":
        return ErrorCategory.REGISTRATION_CLOSED

    # asyncio.TimeoutError, playwright TimeoutError, wait_for timeouts
    if isinstance(error, TimeoutError) or "timeout" in exc_type_name.lower():
        return ErrorCategory.NETWORK_ERROR

    if isinstance(error, ConnectionError):
        return ErrorCategory.NETWORK_ERROR

    return None


def _classify_status_metadata(error: BaseException) -> ErrorCategory | None:
    for attribute in ("status_code", "status"):
        value = getattr(error, attribute, None)
        if isinstance(value, int) and not isinstance(value, bool):
            category = classify_status_code(value)
            if category is not None:
                return category
    return None


def classify_error(error: BaseException | str, *, log_decision: bool = True) -> ErrorCategory:
    """Classify a failure into an ErrorCategory.

    Args:
        error: Exception raised during an attempt, or an error message
        log_decision: Whether to log the classification decision (default: True)

    Returns:
        ErrorCategory for the failure. Never raises.
    """
    classification_type = "message"
    try:
        if isinstance(error, BaseException):
            category = _classify_exception_type(error)
            classification_type = "exception_type"

            if category is None:
                category = _classify_status_metadata(error)
                classification_type = "status_code"

            if category is None:
                category = classify_message(f"{type(error).__name__}: {error}")
                classification_type = "message"
        else:
            category = classify_message(str(error))
    except Exception as e:
        # Guard: classification itself must never break the caller
        logger.warning("error_classification_failed", error=str(e))
        return ErrorCategory.UNKNOWN_ERROR

    if log_decision:
        logger.info(
            "error_classified",
            classification_type=classification_type,
            exception_type=type(error).__name__ if isinstance(error, BaseException) else None,
            error_category=category.value,
            is_retryable=is_retryable_category(category),
        )

    return category


def get_error_context(exc: BaseException) -> dict[str, str]:
    """Extract error context from exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary with error details
    """
    return {
        "exception_type": type(exc).__name__,
        "exception_module": type(exc).__module__,
        "error_message": str(exc),
        "stack_trace": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    }
