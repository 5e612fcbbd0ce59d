"""Repository for events table operations."""

from __future__ import annotations

from typing import Any

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncConnection

from registrar.db.repositories.base import as_utc_optional, utcnow
from registrar.db.tables import events
from registrar.schemas.event import AgeRange, Event, EventStatus, FamilyProfile


def row_to_event(row: Row[Any]) -> Event:
    """Convert an ``events`` row to an Event."""
    age_range = None
    if row.age_min is not None or row.age_max is not None:
        age_range = AgeRange(min_age=row.age_min, max_age=row.age_max)

    return Event(
        id=row.id,
        title=row.title,
        sources=list(row.sources or []),
        cost=float(row.cost) if row.cost is not None else None,
        registration_url=row.registration_url,
        status=EventStatus(row.status),
        age_range=age_range,
        scheduled_at=as_utc_optional(row.scheduled_at),
        location=row.location,
        family_profile=(
            FamilyProfile.model_validate(row.family_profile) if row.family_profile else None
        ),
    )


class EventRepository:
    """Repository for events table operations."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    async def create(self, event: Event) -> Event:
        """Insert an event.

        Args:
            event: Event to store (its status is stored as given)

        Returns:
            The stored event
        """
        now = utcnow()
        await self.conn.execute(
            insert(events).values(
                id=event.id,
                title=event.title,
                sources=list(event.sources),
                cost=event.cost,
                registration_url=event.registration_url,
                status=event.status.value,
                age_min=event.age_range.min_age if event.age_range else None,
                age_max=event.age_range.max_age if event.age_range else None,
                scheduled_at=event.scheduled_at,
                location=event.location,
                family_profile=(
                    event.family_profile.model_dump() if event.family_profile else None
                ),
                created_at=now,
                updated_at=now,
            )
        )
        return event

    async def get(self, event_id: str) -> Event | None:
        result = await self.conn.execute(select(events).where(events.c.id == event_id))
        row = result.first()
        return row_to_event(row) if row is not None else None

    async def list_by_status(self, status: EventStatus, limit: int | None = None) -> list[Event]:
        """List events in one status, oldest first.

        Args:
            status: Status to filter on
            limit: Optional maximum number of events

        Returns:
            List of events
        """
        query = select(events).where(events.c.status == status.value).order_by(events.c.created_at)
        if limit is not None:
            query = query.limit(limit)
        result = await self.conn.execute(query)
        return [row_to_event(row) for row in result]

    async def update_status(
        self,
        event_id: str,
        expected: EventStatus,
        new: EventStatus,
        confirmation_id: str | None = None,
        message: str | None = None,
    ) -> bool:
        """Change status only if the row is still in ``expected``.

        Args:
            event_id: Event to update
            expected: Status the row must currently have
            new: Status to write
            confirmation_id: Confirmation identifier for registered events
            message: Human-readable reason shown on the dashboard

        Returns:
            True if a row was updated, False if the status had already changed
        """
        result = await self.conn.execute(
            update(events)
            .where(events.c.id == event_id, events.c.status == expected.value)
            .values(
                status=new.value,
                confirmation_id=confirmation_id,
                status_message=message,
                updated_at=utcnow(),
            )
        )
        return result.rowcount == 1

    async def get_status_details(self, event_id: str) -> dict[str, Any] | None:
        """Status, confirmation id and message for an event."""
        result = await self.conn.execute(
            select(events.c.status, events.c.confirmation_id, events.c.status_message).where(
                events.c.id == event_id
            )
        )
        row = result.first()
        if row is None:
            return None
        return {
            "status": EventStatus(row.status),
            "confirmation_id": row.confirmation_id,
            "status_message": row.status_message,
        }
