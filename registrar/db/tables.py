"""SQLAlchemy Core table definitions.

Mirrors the Alembic migrations. Statuses and error categories are stored as
plain strings so the same tables work on PostgreSQL and SQLite.
"""

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
)

metadata = MetaData()

# BIGSERIAL on PostgreSQL, INTEGER PRIMARY KEY (rowid alias) on SQLite
_BigIntId = BigInteger().with_variant(Integer, "sqlite")

events = Table(
    "events",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("title", Text, nullable=False),
    Column("sources", JSON, nullable=False, default=list),
    Column("cost", Numeric(10, 2), nullable=True),
    Column("registration_url", Text, nullable=True),
    Column("status", String(32), nullable=False, default="discovered"),
    Column("age_min", Integer, nullable=True),
    Column("age_max", Integer, nullable=True),
    Column("scheduled_at", DateTime(timezone=True), nullable=True),
    Column("location", Text, nullable=True),
    Column("family_profile", JSON, nullable=True),
    Column("confirmation_id", String(255), nullable=True),
    Column("status_message", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("idx_events_status", "status"),
)

registration_history = Table(
    "registration_history",
    metadata,
    Column("id", _BigIntId, primary_key=True, autoincrement=True),
    Column(
        "event_id",
        String(64),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("attempt_number", Integer, nullable=False),
    Column("success", Boolean, nullable=False),
    Column("strategy_name", String(64), nullable=False),
    Column("message", Text, nullable=False),
    Column("confirmation_id", String(255), nullable=True),
    Column("error_category", String(32), nullable=True),
    Column("registration_method", String(32), nullable=True),
    Column("requires_manual_action", Boolean, nullable=False, default=False),
    Column("safety_violation", Boolean, nullable=False, default=False),
    Column("elapsed_ms", Integer, nullable=False, default=0),
    Column("recorded_at", DateTime(timezone=True), nullable=False),
    Index("idx_registration_history_event_id", "event_id", "attempt_number"),
)

failure_records = Table(
    "failure_records",
    metadata,
    Column("event_id", String(64), primary_key=True),
    Column("strategy_name", String(64), primary_key=True),
    Column("attempt_count", Integer, nullable=False),
    Column("total_elapsed_ms", Integer, nullable=False, default=0),
    Column("last_error_category", String(32), nullable=False),
    Column("last_error_message", Text, nullable=False, default=""),
    Column("last_failure_at", DateTime(timezone=True), nullable=False),
    Index("idx_failure_records_last_failure_at", "last_failure_at"),
)
