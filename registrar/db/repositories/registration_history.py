"""Repository for registration_history table operations."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncConnection

from registrar.db.repositories.base import as_utc, utcnow
from registrar.db.tables import registration_history
from registrar.schemas.registration import (
    ErrorCategory,
    RegistrationAttemptResult,
    RegistrationHistoryEntry,
    RegistrationMethod,
)


class RegistrationHistoryRepository:
    """Append-only log of registration attempts."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    async def create(
        self,
        event_id: str,
        attempt_number: int,
        result: RegistrationAttemptResult,
        recorded_at: datetime | None = None,
    ) -> None:
        """Record one attempt.

        Args:
            event_id: Event the attempt belongs to
            attempt_number: Attempt number within the registration run (1-indexed)
            result: Attempt outcome
            recorded_at: Timestamp, defaults to now
        """
        await self.conn.execute(
            insert(registration_history).values(
                event_id=event_id,
                attempt_number=attempt_number,
                success=result.success,
                strategy_name=result.strategy_name,
                message=result.message[:1000],  # Guard: keep rows bounded
                confirmation_id=result.confirmation_id,
                error_category=result.error_category.value if result.error_category else None,
                registration_method=(
                    result.registration_method.value if result.registration_method else None
                ),
                requires_manual_action=result.requires_manual_action,
                safety_violation=result.safety_violation,
                elapsed_ms=result.elapsed_ms,
                recorded_at=recorded_at or utcnow(),
            )
        )

    async def get_by_event_id(self, event_id: str) -> list[RegistrationHistoryEntry]:
        """Get all attempts for an event, oldest first."""
        result = await self.conn.execute(
            select(registration_history)
            .where(registration_history.c.event_id == event_id)
            .order_by(registration_history.c.id)
        )
        return [
            RegistrationHistoryEntry(
                event_id=row.event_id,
                attempt_number=row.attempt_number,
                recorded_at=as_utc(row.recorded_at),
                result=RegistrationAttemptResult(
                    success=row.success,
                    message=row.message,
                    strategy_name=row.strategy_name,
                    confirmation_id=row.confirmation_id,
                    error_category=(
                        ErrorCategory(row.error_category) if row.error_category else None
                    ),
                    registration_method=(
                        RegistrationMethod(row.registration_method)
                        if row.registration_method
                        else None
                    ),
                    requires_manual_action=row.requires_manual_action,
                    safety_violation=row.safety_violation,
                    elapsed_ms=row.elapsed_ms,
                    attempts=row.attempt_number,
                ),
            )
            for row in result
        ]
