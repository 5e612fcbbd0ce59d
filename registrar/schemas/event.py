"""Pydantic schemas for events, family profiles and the event status lifecycle."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class EventStatus(StrEnum):
    """Lifecycle of an event as seen by the registration subsystem."""

    DISCOVERED = "discovered"
    PROPOSED = "proposed"
    APPROVED = "approved"
    REGISTERING = "registering"
    REGISTERED = "registered"
    FAILED = "failed"
    MANUAL_REQUIRED = "manual_required"


# Only these edges are legal. REGISTERING is in-memory only: durable writes
# go from APPROVED straight to the terminal state.
ALLOWED_TRANSITIONS: dict[EventStatus, frozenset[EventStatus]] = {
    EventStatus.DISCOVERED: frozenset({EventStatus.PROPOSED}),
    EventStatus.PROPOSED: frozenset({EventStatus.APPROVED}),
    EventStatus.APPROVED: frozenset({EventStatus.REGISTERING, EventStatus.MANUAL_REQUIRED}),
    EventStatus.REGISTERING: frozenset(
        {EventStatus.REGISTERED, EventStatus.FAILED, EventStatus.MANUAL_REQUIRED}
    ),
    EventStatus.REGISTERED: frozenset(),
    EventStatus.FAILED: frozenset(),
    EventStatus.MANUAL_REQUIRED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    {EventStatus.REGISTERED, EventStatus.FAILED, EventStatus.MANUAL_REQUIRED}
)


class InvalidStatusTransitionError(ValueError):
    """Raised when an event status change is not an allowed edge."""

    def __init__(self, current: EventStatus, target: EventStatus):
        super().__init__(f"Invalid status transition: {current.value} -> {target.value}")
        self.current = current
        self.target = target


def can_transition(current: EventStatus, target: EventStatus) -> bool:
    """Check whether ``current -> target`` is an allowed edge."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_transition(current: EventStatus, target: EventStatus) -> None:
    """Validate a status change.

    Args:
        current: Status the event is in
        target: Status the caller wants to move to

    Raises:
        InvalidStatusTransitionError: If the edge is not allowed
    """
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(current, target)


class Child(BaseModel):
    """A child attending the event."""

    name: str = Field(..., min_length=1)
    age: int = Field(..., ge=0, le=21)


class FamilyProfile(BaseModel):
    """Family details used to fill registration forms.

    Example:
        {
            "parent_name": "Jordan Rivera",
            "parent_email": "jordan@example.com",
            "phone": "415-555-0100",
            "children": [{"name": "Ada", "age": 6}]
        }
    """

    parent_name: str = Field(..., min_length=1)
    parent_email: str = Field(..., min_length=3)
    secondary_parent_name: str | None = None
    secondary_parent_email: str | None = None
    phone: str | None = None
    children: list[Child] = Field(default_factory=list)

    @property
    def first_name(self) -> str:
        return self.parent_name.split()[0]

    @property
    def last_name(self) -> str:
        parts = self.parent_name.split()
        return " ".join(parts[1:]) if len(parts) > 1 else ""

    @property
    def child_count(self) -> int:
        return len(self.children)

    @property
    def party_size(self) -> int:
        """Children plus one attending adult."""
        return self.child_count + 1

    @property
    def children_summary(self) -> str:
        """Children as free text, e.g. ``"Ada (age 6), Max (age 4)"``."""
        return ", ".join(f"{child.name} (age {child.age})" for child in self.children)


class AgeRange(BaseModel):
    """Suitable age range advertised by the event source."""

    min_age: int | None = Field(None, ge=0)
    max_age: int | None = Field(None, ge=0)


class Event(BaseModel):
    """A family event as handed to the registration subsystem."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1)
    title: str
    sources: list[str] = Field(default_factory=list)
    cost: float | None = Field(None, description="Ticket cost; must be exactly 0 to register")
    registration_url: str | None = None
    status: EventStatus = EventStatus.DISCOVERED
    age_range: AgeRange | None = None
    scheduled_at: datetime | None = None
    location: str | None = None
    family_profile: FamilyProfile | None = None

    @property
    def is_free(self) -> bool:
        """True only for an explicit cost of zero."""
        return self.cost is not None and self.cost == 0
