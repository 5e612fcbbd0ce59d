"""Base utilities for repositories."""

from datetime import UTC, datetime


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset).

    Args:
        value: Datetime read from the database

    Returns:
        Timezone-aware datetime
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def as_utc_optional(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return as_utc(value)


def utcnow() -> datetime:
    return datetime.now(UTC)
