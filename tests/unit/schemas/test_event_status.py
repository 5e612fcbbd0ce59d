"""Unit tests for event schemas and the status state machine."""

import pytest
from pydantic import ValidationError

from registrar.schemas.event import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    Child,
    Event,
    EventStatus,
    FamilyProfile,
    InvalidStatusTransitionError,
    can_transition,
    validate_transition,
)
from registrar.schemas.registration import (
    ErrorCategory,
    RegistrationAttemptResult,
    RegistrationMethod,
)


class TestStatusTransitions:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (EventStatus.DISCOVERED, EventStatus.PROPOSED),
            (EventStatus.PROPOSED, EventStatus.APPROVED),
            (EventStatus.APPROVED, EventStatus.REGISTERING),
            (EventStatus.APPROVED, EventStatus.MANUAL_REQUIRED),
            (EventStatus.REGISTERING, EventStatus.REGISTERED),
            (EventStatus.REGISTERING, EventStatus.FAILED),
            (EventStatus.REGISTERING, EventStatus.MANUAL_REQUIRED),
        ],
    )
    def test_allowed_transitions(self, current, target):
        assert can_transition(current, target) is True
        validate_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (EventStatus.DISCOVERED, EventStatus.REGISTERING),
            (EventStatus.PROPOSED, EventStatus.REGISTERING),
            (EventStatus.APPROVED, EventStatus.REGISTERED),
            (EventStatus.REGISTERED, EventStatus.REGISTERING),
            (EventStatus.FAILED, EventStatus.APPROVED),
        ],
    )
    def test_rejected_transitions(self, current, target):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            validate_transition(current, target)

        assert exc_info.value.current == current
        assert exc_info.value.target == target

    def test_terminal_statuses_have_no_exits(self):
        for status in TERMINAL_STATUSES:
            assert ALLOWED_TRANSITIONS[status] == frozenset()

    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(EventStatus)


class TestEvent:
    def test_is_free_requires_explicit_zero(self):
        assert Event(id="e", title="t", cost=0).is_free is True
        assert Event(id="e", title="t", cost=None).is_free is False
        assert Event(id="e", title="t", cost=3).is_free is False

    def test_defaults(self):
        event = Event(id="e", title="Storytime")

        assert event.status == EventStatus.DISCOVERED
        assert event.sources == []
        assert event.registration_url is None

    def test_empty_id_is_rejected(self):
        with pytest.raises(ValidationError):
            Event(id="", title="t")


class TestFamilyProfile:
    def test_name_parts(self, family):
        assert family.first_name == "Jordan"
        assert family.last_name == "Rivera"

    def test_single_word_name(self):
        family = FamilyProfile(parent_name="Jordan", parent_email="j@example.com")

        assert family.last_name == ""
        assert family.party_size == 1

    def test_children_summary(self, family):
        assert family.child_count == 2
        assert family.party_size == 3
        assert family.children_summary == "Ada (age 6), Max (age 4)"

    def test_child_age_is_bounded(self):
        with pytest.raises(ValidationError):
            Child(name="Ada", age=-1)


class TestRegistrationAttemptResult:
    def test_succeeded_defaults_to_direct_form(self):
        result = RegistrationAttemptResult.succeeded("generic", "ok", confirmation_id="ABC1")

        assert result.success is True
        assert result.error_category is None
        assert result.registration_method == RegistrationMethod.DIRECT_FORM
        assert result.attempts == 1

    def test_failed_carries_category(self):
        result = RegistrationAttemptResult.failed(
            "generic", "sold out", ErrorCategory.REGISTRATION_CLOSED, requires_manual_action=True
        )

        assert result.success is False
        assert result.error_category == ErrorCategory.REGISTRATION_CLOSED
        assert result.requires_manual_action is True

    def test_results_are_immutable(self):
        result = RegistrationAttemptResult.succeeded("generic", "ok")

        with pytest.raises(ValidationError):
            result.success = False

    def test_round_trips_through_json(self):
        result = RegistrationAttemptResult.failed(
            "sf_library", "HTTP 503", ErrorCategory.SERVER_ERROR, elapsed_ms=120, attempts=4
        )

        restored = RegistrationAttemptResult.model_validate_json(result.model_dump_json())

        assert restored == result
