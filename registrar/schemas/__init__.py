"""Pydantic schemas for the registration domain."""

from .event import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    AgeRange,
    Child,
    Event,
    EventStatus,
    FamilyProfile,
    InvalidStatusTransitionError,
    can_transition,
    validate_transition,
)
from .registration import (
    BatchSummary,
    ErrorCategory,
    FailureRecord,
    RegistrationAttemptResult,
    RegistrationHistoryEntry,
    RegistrationMethod,
    RetryStats,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "AgeRange",
    "BatchSummary",
    "Child",
    "ErrorCategory",
    "Event",
    "EventStatus",
    "FailureRecord",
    "FamilyProfile",
    "InvalidStatusTransitionError",
    "RegistrationAttemptResult",
    "RegistrationHistoryEntry",
    "RegistrationMethod",
    "RetryStats",
    "can_transition",
    "validate_transition",
]
