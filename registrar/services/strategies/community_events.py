"""Family event listing sites (bayareakidfun.com, kidsoutandabout.com)."""

from __future__ import annotations

from typing import Any

from registrar.schemas.event import Event
from registrar.schemas.registration import (
    ErrorCategory,
    RegistrationAttemptResult,
    RegistrationMethod,
)
from registrar.services.strategies import page_reader
from registrar.services.strategies.base import (
    DROP_IN_PATTERN,
    MAILTO_SELECTOR,
    SiteStrategy,
    hostname_of,
)
from registrar.services.strategies.forms import FormPlan

_REGISTER_LINKS = 'a:has-text("Register"), a:has-text("Sign up"), a:has-text("RSVP")'


class CommunityEventsStrategy(SiteStrategy):
    """Community calendars that republish events run by many small organizers."""

    name = "community_events"
    domains = ("bayareakidfun.com", "kidsoutandabout.com")

    async def analyze(self, event: Event, page: Any) -> FormPlan | RegistrationAttemptResult:
        platform = await self.detect_third_party(
            page, ("Eventbrite", "Facebook Events", "Meetup")
        )
        if platform:
            return self.manual(
                f"Registration is on {platform}",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.THIRD_PARTY,
            )

        await self.ensure_open(page)

        plan = await self.find_form_plan(page, min_score=15)
        if plan is not None:
            return plan

        if await page_reader.count(page, MAILTO_SELECTOR) > 0:
            return self.manual(
                "Organizer takes registrations by email",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.EMAIL,
            )

        text = await page_reader.page_text(page)
        if DROP_IN_PATTERN.search(text):
            return self.drop_in("Community event - no registration required")

        href = await page_reader.first_href(page, _REGISTER_LINKS)
        host = hostname_of(href) if href and "://" in href else None
        if host and host != hostname_of(page.url):
            return self.manual(
                f"Registration is on the organizer's site ({host})",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.THIRD_PARTY,
            )

        return self.manual(
            "No registration option found on listing",
            ErrorCategory.UNKNOWN_ERROR,
            method=RegistrationMethod.UNKNOWN,
        )
