"""Unit tests for the bounded failure history."""

from datetime import UTC, datetime, timedelta

import pytest

from registrar.schemas.registration import ErrorCategory, FailureRecord
from registrar.services.failure_history import FailureHistory, FailureKey

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


def record(event_id="evt-1", strategy="generic", at=NOW, attempts=1) -> FailureRecord:
    return FailureRecord(
        event_id=event_id,
        strategy_name=strategy,
        attempt_count=attempts,
        last_error_category=ErrorCategory.NETWORK_ERROR,
        last_error_message="timeout",
        last_failure_at=at,
    )


class TestFailureHistory:
    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            FailureHistory(max_entries=0)

    def test_record_and_get(self):
        history = FailureHistory()
        history.record_failure(record())

        assert len(history) == 1
        assert history.get(FailureKey("evt-1", "generic")).attempt_count == 1

    def test_same_key_replaces(self):
        history = FailureHistory()
        history.record_failure(record(attempts=1))
        history.record_failure(record(attempts=3))

        assert len(history) == 1
        assert history.get(FailureKey("evt-1", "generic")).attempt_count == 3

    def test_evicts_least_recently_updated(self):
        history = FailureHistory(max_entries=2)
        history.record_failure(record("a"))
        history.record_failure(record("b"))
        history.record_failure(record("a", attempts=2))  # refresh "a"
        history.record_failure(record("c"))

        assert history.get(FailureKey("b", "generic")) is None
        assert history.get(FailureKey("a", "generic")) is not None
        assert history.get(FailureKey("c", "generic")) is not None

    def test_cooling_down(self):
        history = FailureHistory()
        history.record_failure(record(at=NOW))
        key = FailureKey("evt-1", "generic")

        assert history.is_cooling_down(key, NOW + timedelta(seconds=10), timedelta(minutes=5))
        assert not history.is_cooling_down(key, NOW + timedelta(minutes=6), timedelta(minutes=5))
        assert not history.is_cooling_down(
            FailureKey("other", "generic"), NOW, timedelta(minutes=5)
        )

    def test_evict_older_than(self):
        history = FailureHistory()
        history.record_failure(record("old", at=NOW - timedelta(hours=30)))
        history.record_failure(record("new", at=NOW))

        assert history.evict_older_than(NOW - timedelta(hours=24)) == 1
        assert [r.event_id for r in history] == ["new"]

    def test_load_keeps_newer_copy(self):
        history = FailureHistory()
        history.record_failure(record(at=NOW, attempts=4))

        accepted = history.load(
            [record(at=NOW - timedelta(minutes=1), attempts=1), record("other", at=NOW)]
        )

        assert accepted == 1
        assert history.get(FailureKey("evt-1", "generic")).attempt_count == 4

    def test_discard_and_clear(self):
        history = FailureHistory()
        history.record_failure(record("a"))
        history.record_failure(record("b"))

        history.discard(FailureKey("a", "generic"))
        assert len(history) == 1

        history.clear()
        assert len(history) == 0
