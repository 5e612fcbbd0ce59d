"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from config import Settings
from registrar.schemas.event import Child, Event, EventStatus, FamilyProfile
from registrar.services.payment_guard import PaymentGuard
from registrar.services.retry_engine import RetryEngine
from registrar.services.strategies.registry import StrategyRegistry
from tests.fakes import FakePageProvider, InMemoryStore


@pytest.fixture
def settings() -> Settings:
    """Test settings: fast timeouts, no jitter, no metrics server."""
    return Settings(
        environment="testing",
        database_url="sqlite+aiosqlite:///:memory:",
        enable_metrics=False,
        registration_max_concurrency=2,
        registration_attempt_timeout_seconds=5.0,
        registration_navigation_timeout_ms=1000,
        registration_step_timeout_ms=500,
        retry_jitter_enabled=False,
        failure_cooldown_seconds=300,
        family_parent_name="Jordan Rivera",
        family_parent_email="jordan@example.com",
        family_phone="415-555-0100",
        family_children="Ada:6,Max:4",
    )


@pytest.fixture
def family() -> FamilyProfile:
    return FamilyProfile(
        parent_name="Jordan Rivera",
        parent_email="jordan@example.com",
        phone="415-555-0100",
        children=[Child(name="Ada", age=6), Child(name="Max", age=4)],
    )


@pytest.fixture
def make_event():
    """Factory for approved, free events."""

    def _make(
        event_id: str = "evt-1",
        url: str | None = "https://example.org/events/storytime",
        cost: float | None = 0,
        status: EventStatus = EventStatus.APPROVED,
        **extra,
    ) -> Event:
        return Event(
            id=event_id,
            title=extra.pop("title", "Family Storytime"),
            registration_url=url,
            cost=cost,
            status=status,
            **extra,
        )

    return _make


@pytest.fixture
def payment_guard() -> PaymentGuard:
    return PaymentGuard()


@pytest.fixture
def registry(settings, payment_guard) -> StrategyRegistry:
    return StrategyRegistry(settings, payment_guard)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def retry_engine(settings, store) -> RetryEngine:
    return RetryEngine(settings, failure_sink=store)


@pytest.fixture
def page_provider() -> FakePageProvider:
    return FakePageProvider()
