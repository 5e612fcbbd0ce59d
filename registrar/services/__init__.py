"""Services package."""

from .browser_pool import BrowserCrashError, BrowserPool
from .error_classifier import classify_error, get_error_context, is_retryable_category
from .failure_history import FailureHistory, FailureKey
from .payment_guard import PaymentGuard, PaymentIndicator, PaymentSafetyViolation
from .registration_orchestrator import (
    PageProvider,
    RegistrationOrchestrator,
    RegistrationStore,
    default_family_profile,
)
from .registration_scheduler import start_registration_scheduler, stop_registration_scheduler
from .retry_engine import RetryContext, RetryEngine
from .retry_policy import (
    DEFAULT_POLICIES,
    RetryOverrides,
    RetryPolicy,
    calculate_backoff,
    get_policy,
)
from .strategies import SiteStrategy, StrategyRegistry

__all__ = [
    "DEFAULT_POLICIES",
    "BrowserCrashError",
    "BrowserPool",
    "FailureHistory",
    "FailureKey",
    "PageProvider",
    "PaymentGuard",
    "PaymentIndicator",
    "PaymentSafetyViolation",
    "RegistrationOrchestrator",
    "RegistrationStore",
    "RetryContext",
    "RetryEngine",
    "RetryOverrides",
    "RetryPolicy",
    "SiteStrategy",
    "StrategyRegistry",
    "calculate_backoff",
    "classify_error",
    "default_family_profile",
    "get_error_context",
    "get_policy",
    "is_retryable_category",
    "start_registration_scheduler",
    "stop_registration_scheduler",
]
