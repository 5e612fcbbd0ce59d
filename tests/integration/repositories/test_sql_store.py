"""Integration tests for SqlRegistrationStore and the repositories behind it."""

from datetime import UTC, datetime, timedelta

import pytest

from registrar.db.repositories import EventRepository, RegistrationHistoryRepository
from registrar.schemas.event import AgeRange, Child, EventStatus, FamilyProfile
from registrar.schemas.registration import (
    ErrorCategory,
    FailureRecord,
    RegistrationAttemptResult,
    RegistrationMethod,
)

pytestmark = pytest.mark.integration


def failure_record(event_id="evt-1", strategy="generic", minutes_ago=0, attempts=1):
    return FailureRecord(
        event_id=event_id,
        strategy_name=strategy,
        attempt_count=attempts,
        total_elapsed_ms=250,
        last_error_category=ErrorCategory.NETWORK_ERROR,
        last_error_message="connection reset",
        last_failure_at=datetime.now(UTC) - timedelta(minutes=minutes_ago),
    )


class TestEvents:
    async def test_add_and_get_event(self, sql_store, make_event):
        event = make_event(
            sources=["sfpl.org"],
            age_range=AgeRange(min_age=2, max_age=8),
            family_profile=FamilyProfile(
                parent_name="Jordan Rivera",
                parent_email="jordan@example.com",
                children=[Child(name="Ada", age=6)],
            ),
        )

        await sql_store.add_event(event)
        fetched = await sql_store.get_event("evt-1")

        assert fetched is not None
        assert fetched.title == "Family Storytime"
        assert fetched.cost == 0
        assert fetched.is_free is True
        assert fetched.sources == ["sfpl.org"]
        assert fetched.age_range == AgeRange(min_age=2, max_age=8)
        assert fetched.family_profile.children[0].name == "Ada"
        assert fetched.status == EventStatus.APPROVED

    async def test_get_missing_event(self, sql_store):
        assert await sql_store.get_event("nope") is None

    async def test_unknown_cost_round_trips_as_none(self, sql_store, make_event):
        await sql_store.add_event(make_event(cost=None))

        fetched = await sql_store.get_event("evt-1")

        assert fetched.cost is None
        assert fetched.is_free is False

    async def test_list_by_status(self, sql_store, make_event):
        await sql_store.add_event(make_event("a"))
        await sql_store.add_event(make_event("b", status=EventStatus.PROPOSED))
        await sql_store.add_event(make_event("c"))

        approved = await sql_store.list_events_by_status(EventStatus.APPROVED)

        assert sorted(event.id for event in approved) == ["a", "c"]


class TestConditionalStatusUpdate:
    """Status writes only apply when the row is still in the expected status."""

    async def test_update_from_expected_status(self, sql_store, db_engine, make_event):
        await sql_store.add_event(make_event())

        updated = await sql_store.update_event_status(
            "evt-1",
            EventStatus.APPROVED,
            EventStatus.REGISTERED,
            confirmation_id="ABC12345",
            message="Registered via sf_library",
        )

        assert updated is True
        async with db_engine.begin() as conn:
            details = await EventRepository(conn).get_status_details("evt-1")
        assert details == {
            "status": EventStatus.REGISTERED,
            "confirmation_id": "ABC12345",
            "status_message": "Registered via sf_library",
        }

    async def test_stale_expected_status_is_a_noop(self, sql_store, make_event):
        await sql_store.add_event(make_event())
        await sql_store.update_event_status("evt-1", EventStatus.APPROVED, EventStatus.FAILED)

        updated = await sql_store.update_event_status(
            "evt-1", EventStatus.APPROVED, EventStatus.REGISTERED
        )

        assert updated is False
        assert (await sql_store.get_event("evt-1")).status == EventStatus.FAILED

    async def test_update_missing_event(self, sql_store):
        assert (
            await sql_store.update_event_status("nope", EventStatus.APPROVED, EventStatus.FAILED)
            is False
        )


class TestRegistrationHistory:
    async def test_attempts_are_appended_in_order(self, sql_store, db_engine, make_event):
        await sql_store.add_event(make_event())
        first = RegistrationAttemptResult.failed(
            "sf_library", "connection reset", ErrorCategory.NETWORK_ERROR, elapsed_ms=40
        )
        second = RegistrationAttemptResult.succeeded(
            "sf_library", "Registered", confirmation_id="ABC12345", elapsed_ms=900
        )

        await sql_store.append_registration_history("evt-1", 1, first)
        await sql_store.append_registration_history("evt-1", 2, second)

        async with db_engine.begin() as conn:
            entries = await RegistrationHistoryRepository(conn).get_by_event_id("evt-1")

        assert [entry.attempt_number for entry in entries] == [1, 2]
        assert entries[0].result.error_category == ErrorCategory.NETWORK_ERROR
        assert entries[0].result.success is False
        assert entries[1].result.confirmation_id == "ABC12345"
        assert entries[1].result.registration_method == RegistrationMethod.DIRECT_FORM
        assert entries[1].recorded_at.tzinfo is not None

    async def test_long_messages_are_truncated(self, sql_store, db_engine, make_event):
        await sql_store.add_event(make_event())
        result = RegistrationAttemptResult.failed(
            "generic", "x" * 5000, ErrorCategory.UNKNOWN_ERROR
        )

        await sql_store.append_registration_history("evt-1", 1, result)

        async with db_engine.begin() as conn:
            entries = await RegistrationHistoryRepository(conn).get_by_event_id("evt-1")
        assert len(entries[0].result.message) == 1000


class TestFailureRecords:
    async def test_save_and_list(self, sql_store):
        await sql_store.save_failure_record(failure_record())

        records = await sql_store.list_failure_records(datetime.now(UTC) - timedelta(hours=1))

        assert len(records) == 1
        assert records[0].event_id == "evt-1"
        assert records[0].last_error_category == ErrorCategory.NETWORK_ERROR
        assert records[0].last_failure_at.tzinfo is not None

    async def test_save_replaces_existing_record(self, sql_store):
        """One row per (event, strategy): the latest give-up wins."""
        await sql_store.save_failure_record(failure_record(minutes_ago=30, attempts=1))
        await sql_store.save_failure_record(failure_record(minutes_ago=1, attempts=4))
        await sql_store.save_failure_record(failure_record(strategy="sf_library"))

        records = await sql_store.list_failure_records(datetime.now(UTC) - timedelta(hours=1))

        by_strategy = {record.strategy_name: record for record in records}
        assert set(by_strategy) == {"generic", "sf_library"}
        assert by_strategy["generic"].attempt_count == 4

    async def test_list_since_filters_old_records(self, sql_store):
        await sql_store.save_failure_record(failure_record("old", minutes_ago=120))
        await sql_store.save_failure_record(failure_record("new", minutes_ago=5))

        records = await sql_store.list_failure_records(datetime.now(UTC) - timedelta(hours=1))

        assert [record.event_id for record in records] == ["new"]

    async def test_prune(self, sql_store):
        await sql_store.save_failure_record(failure_record("old", minutes_ago=60 * 48))
        await sql_store.save_failure_record(failure_record("new", minutes_ago=5))

        deleted = await sql_store.prune_failure_records(datetime.now(UTC) - timedelta(hours=24))

        assert deleted == 1
        remaining = await sql_store.list_failure_records(datetime.now(UTC) - timedelta(days=7))
        assert [record.event_id for record in remaining] == ["new"]
