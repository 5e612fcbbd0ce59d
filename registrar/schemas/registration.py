"""Pydantic schemas for registration attempts, failure records and statistics."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ErrorCategory(StrEnum):
    """Closed set of failure categories used to drive retry decisions."""

    NETWORK_ERROR = "network_error"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    RATE_LIMIT = "rate_limit"
    BROWSER_ERROR = "browser_error"
    SITE_UNAVAILABLE = "site_unavailable"
    REGISTRATION_CLOSED = "registration_closed"
    UNKNOWN_ERROR = "unknown_error"


class RegistrationMethod(StrEnum):
    """How a registration was (or would have to be) completed."""

    DIRECT_FORM = "direct_form"
    RSVP_LINK = "rsvp_link"
    DROP_IN = "drop_in"
    THIRD_PARTY = "third_party"
    TICKET_PURCHASE = "ticket_purchase"
    ACCOUNT_REQUIRED = "account_required"
    EMAIL = "email"
    UNKNOWN = "unknown"


class RegistrationAttemptResult(BaseModel):
    """Outcome of one registration attempt.

    Immutable once created. One row of registration history is written per
    attempt, so a result is never edited after the fact.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    strategy_name: str
    confirmation_id: str | None = None
    error_category: ErrorCategory | None = None
    elapsed_ms: int = Field(default=0, ge=0)
    requires_manual_action: bool = False
    registration_method: RegistrationMethod | None = None
    attempts: int = Field(default=1, ge=0)
    safety_violation: bool = False
    skip_reason: str | None = None

    @classmethod
    def succeeded(
        cls,
        strategy_name: str,
        message: str,
        *,
        confirmation_id: str | None = None,
        registration_method: RegistrationMethod | None = RegistrationMethod.DIRECT_FORM,
        elapsed_ms: int = 0,
    ) -> RegistrationAttemptResult:
        return cls(
            success=True,
            message=message,
            strategy_name=strategy_name,
            confirmation_id=confirmation_id,
            registration_method=registration_method,
            elapsed_ms=elapsed_ms,
        )

    @classmethod
    def failed(
        cls,
        strategy_name: str,
        message: str,
        category: ErrorCategory,
        *,
        requires_manual_action: bool = False,
        registration_method: RegistrationMethod | None = None,
        elapsed_ms: int = 0,
        safety_violation: bool = False,
        skip_reason: str | None = None,
        attempts: int = 1,
    ) -> RegistrationAttemptResult:
        return cls(
            success=False,
            message=message,
            strategy_name=strategy_name,
            error_category=category,
            requires_manual_action=requires_manual_action,
            registration_method=registration_method,
            elapsed_ms=elapsed_ms,
            safety_violation=safety_violation,
            skip_reason=skip_reason,
            attempts=attempts,
        )


class FailureRecord(BaseModel):
    """Latest give-up for an (event, strategy) pair."""

    model_config = ConfigDict(from_attributes=True)

    event_id: str
    strategy_name: str
    attempt_count: int = Field(..., ge=1)
    total_elapsed_ms: int = Field(default=0, ge=0)
    last_error_category: ErrorCategory
    last_error_message: str = ""
    last_failure_at: datetime


class RegistrationHistoryEntry(BaseModel):
    """One persisted attempt, as appended to registration history."""

    model_config = ConfigDict(from_attributes=True)

    event_id: str
    attempt_number: int
    result: RegistrationAttemptResult
    recorded_at: datetime


class RetryStats(BaseModel):
    """Aggregate view over operations run by the retry engine."""

    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    average_attempts: float = 0.0
    average_success_time_ms: float = 0.0
    common_error_types: dict[str, int] = Field(default_factory=dict)


class BatchSummary(BaseModel):
    """Counts for one pass over approved events."""

    processed: int = 0
    registered: int = 0
    failed: int = 0
    manual_required: int = 0
    skipped: int = 0
