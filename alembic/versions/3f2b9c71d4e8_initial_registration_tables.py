"""initial registration tables

Revision ID: 3f2b9c71d4e8
Revises:
Create Date: 2026-10-17 09:12:44.318502

Creates:
- events: approved-event source and terminal registration status
- registration_history: one row per registration attempt
- failure_records: latest give-up per (event, strategy) for cool-down skips

"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2b9c71d4e8"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema - one statement per call for asyncpg compatibility."""
    op.execute("""
        CREATE TABLE events (
            id VARCHAR(64) PRIMARY KEY,
            title TEXT NOT NULL,
            sources JSON NOT NULL DEFAULT '[]',
            cost NUMERIC(10, 2),
            registration_url TEXT,
            status VARCHAR(32) NOT NULL DEFAULT 'discovered',
            age_min INTEGER,
            age_max INTEGER,
            scheduled_at TIMESTAMPTZ,
            location TEXT,
            family_profile JSON,
            confirmation_id VARCHAR(255),
            status_message TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,

            CONSTRAINT ck_events_status CHECK (status IN (
                'discovered', 'proposed', 'approved', 'registering',
                'registered', 'failed', 'manual_required'
            )),
            CONSTRAINT ck_events_cost CHECK (cost IS NULL OR cost >= 0)
        )
    """)

    op.execute("CREATE INDEX idx_events_status ON events(status)")

    op.execute("""
        CREATE TABLE registration_history (
            id BIGSERIAL PRIMARY KEY,
            event_id VARCHAR(64) NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            attempt_number INTEGER NOT NULL,
            success BOOLEAN NOT NULL,
            strategy_name VARCHAR(64) NOT NULL,
            message TEXT NOT NULL,
            confirmation_id VARCHAR(255),
            error_category VARCHAR(32),
            registration_method VARCHAR(32),
            requires_manual_action BOOLEAN NOT NULL DEFAULT false,
            safety_violation BOOLEAN NOT NULL DEFAULT false,
            elapsed_ms INTEGER NOT NULL DEFAULT 0,
            recorded_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,

            CONSTRAINT ck_registration_history_attempt_number CHECK (attempt_number > 0),
            CONSTRAINT ck_registration_history_elapsed CHECK (elapsed_ms >= 0)
        )
    """)

    op.execute(
        "CREATE INDEX idx_registration_history_event_id "
        "ON registration_history(event_id, attempt_number)"
    )

    op.execute("""
        CREATE TABLE failure_records (
            event_id VARCHAR(64) NOT NULL,
            strategy_name VARCHAR(64) NOT NULL,
            attempt_count INTEGER NOT NULL,
            total_elapsed_ms INTEGER NOT NULL DEFAULT 0,
            last_error_category VARCHAR(32) NOT NULL,
            last_error_message TEXT NOT NULL DEFAULT '',
            last_failure_at TIMESTAMPTZ NOT NULL,

            PRIMARY KEY (event_id, strategy_name),
            CONSTRAINT ck_failure_records_attempt_count CHECK (attempt_count >= 1)
        )
    """)

    op.execute(
        "CREATE INDEX idx_failure_records_last_failure_at ON failure_records(last_failure_at)"
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("DROP TABLE IF EXISTS failure_records CASCADE")
    op.execute("DROP TABLE IF EXISTS registration_history CASCADE")
    op.execute("DROP TABLE IF EXISTS events CASCADE")
