"""Repository for failure_records table operations."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncConnection

from registrar.db.repositories.base import as_utc
from registrar.db.tables import failure_records
from registrar.schemas.registration import ErrorCategory, FailureRecord


def row_to_failure_record(row: Row[Any]) -> FailureRecord:
    return FailureRecord(
        event_id=row.event_id,
        strategy_name=row.strategy_name,
        attempt_count=row.attempt_count,
        total_elapsed_ms=row.total_elapsed_ms,
        last_error_category=ErrorCategory(row.last_error_category),
        last_error_message=row.last_error_message,
        last_failure_at=as_utc(row.last_failure_at),
    )


class FailureRecordRepository:
    """One row per (event, strategy): the latest give-up."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    async def upsert(self, record: FailureRecord) -> None:
        """Insert the record or replace the existing one for its key."""
        values = {
            "attempt_count": record.attempt_count,
            "total_elapsed_ms": record.total_elapsed_ms,
            "last_error_category": record.last_error_category.value,
            "last_error_message": record.last_error_message[:1000],
            "last_failure_at": record.last_failure_at,
        }
        result = await self.conn.execute(
            update(failure_records)
            .where(
                failure_records.c.event_id == record.event_id,
                failure_records.c.strategy_name == record.strategy_name,
            )
            .values(**values)
        )
        if result.rowcount == 0:
            await self.conn.execute(
                insert(failure_records).values(
                    event_id=record.event_id, strategy_name=record.strategy_name, **values
                )
            )

    async def get(self, event_id: str, strategy_name: str) -> FailureRecord | None:
        result = await self.conn.execute(
            select(failure_records).where(
                failure_records.c.event_id == event_id,
                failure_records.c.strategy_name == strategy_name,
            )
        )
        row = result.first()
        return row_to_failure_record(row) if row is not None else None

    async def list_since(self, since: datetime) -> list[FailureRecord]:
        """Records whose last failure is at or after ``since``, oldest first."""
        result = await self.conn.execute(
            select(failure_records)
            .where(failure_records.c.last_failure_at >= since)
            .order_by(failure_records.c.last_failure_at)
        )
        return [row_to_failure_record(row) for row in result]

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete records last updated before ``cutoff``.

        Returns:
            Number of rows deleted
        """
        result = await self.conn.execute(
            delete(failure_records).where(failure_records.c.last_failure_at < cutoff)
        )
        return result.rowcount
