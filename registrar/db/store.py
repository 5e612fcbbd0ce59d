"""SQL-backed registration store.

Implements the orchestrator's store protocol with one transaction per
operation, so a status update is never held open across a browser attempt.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncEngine

from registrar.core.logging import get_logger
from registrar.db.repositories import (
    EventRepository,
    FailureRecordRepository,
    RegistrationHistoryRepository,
)
from registrar.schemas.event import Event, EventStatus
from registrar.schemas.registration import FailureRecord, RegistrationAttemptResult

logger = get_logger(__name__)


class SqlRegistrationStore:
    """Registration persistence on top of an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def list_events_by_status(self, status: EventStatus) -> list[Event]:
        async with self.engine.begin() as conn:
            return await EventRepository(conn).list_by_status(status)

    async def get_event(self, event_id: str) -> Event | None:
        async with self.engine.begin() as conn:
            return await EventRepository(conn).get(event_id)

    async def add_event(self, event: Event) -> Event:
        async with self.engine.begin() as conn:
            return await EventRepository(conn).create(event)

    async def update_event_status(
        self,
        event_id: str,
        expected: EventStatus,
        new: EventStatus,
        *,
        confirmation_id: str | None = None,
        message: str | None = None,
    ) -> bool:
        async with self.engine.begin() as conn:
            updated = await EventRepository(conn).update_status(
                event_id, expected, new, confirmation_id=confirmation_id, message=message
            )
        logger.debug(
            "event_status_updated" if updated else "event_status_unchanged",
            event_id=event_id,
            expected=expected.value,
            new=new.value,
        )
        return updated

    async def append_registration_history(
        self, event_id: str, attempt_number: int, result: RegistrationAttemptResult
    ) -> None:
        async with self.engine.begin() as conn:
            await RegistrationHistoryRepository(conn).create(event_id, attempt_number, result)

    async def save_failure_record(self, record: FailureRecord) -> None:
        async with self.engine.begin() as conn:
            await FailureRecordRepository(conn).upsert(record)

    async def list_failure_records(self, since: datetime) -> list[FailureRecord]:
        async with self.engine.begin() as conn:
            return await FailureRecordRepository(conn).list_since(since)

    async def prune_failure_records(self, cutoff: datetime) -> int:
        """Delete durable failure records older than ``cutoff``."""
        async with self.engine.begin() as conn:
            deleted = await FailureRecordRepository(conn).delete_older_than(cutoff)
        if deleted:
            logger.info("failure_records_pruned", deleted=deleted)
        return deleted
