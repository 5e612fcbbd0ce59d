"""Chase Center and Thrive City (chasecenter.com)."""

from __future__ import annotations

import re
from typing import Any

from registrar.schemas.event import Event
from registrar.schemas.registration import (
    ErrorCategory,
    RegistrationAttemptResult,
    RegistrationMethod,
)
from registrar.services.strategies import page_reader
from registrar.services.strategies.base import SiteStrategy, hostname_of
from registrar.services.strategies.forms import FormPlan

_TICKETED_PATTERN = re.compile(
    r"buy tickets|get tickets|season tickets|group tickets|suites|ticket prices", re.IGNORECASE
)

_FREE_EVENT_PATTERN = re.compile(
    r"free admission|free event|free and open|no cost|complimentary|thrive city", re.IGNORECASE
)

_RSVP_LINKS = (
    'a[href*="rsvp"], a:has-text("RSVP"), a:has-text("Register"), a:has-text("Reserve")'
)


class ChaseCenterStrategy(SiteStrategy):
    """Arena events are ticketed through Ticketmaster; Thrive City events are free RSVPs."""

    name = "chase_center"
    domains = ("chasecenter.com",)

    async def analyze(self, event: Event, page: Any) -> FormPlan | RegistrationAttemptResult:
        await self.ensure_open(page)

        if await self.detect_third_party(page, ("Ticketmaster",)):
            return self.manual(
                "Tickets are sold through Ticketmaster",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.THIRD_PARTY,
            )

        text = await page_reader.page_text(page)
        is_free = bool(_FREE_EVENT_PATTERN.search(text))

        if not is_free and _TICKETED_PATTERN.search(text):
            return self.manual(
                "Ticketed Chase Center event - purchase required",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.TICKET_PURCHASE,
            )

        plan = await self.find_form_plan(page)
        if plan is not None:
            return plan

        rsvp_href = await page_reader.first_href(page, _RSVP_LINKS)
        if rsvp_href:
            await self.follow_link(page, rsvp_href)

            platform = await self.detect_third_party(page)
            host = hostname_of(page.url)
            if platform or (host and host.endswith("eventbrite.com")):
                return self.manual(
                    f"RSVP handled by {platform or host}",
                    ErrorCategory.REGISTRATION_CLOSED,
                    method=RegistrationMethod.THIRD_PARTY,
                )

            await self.ensure_open(page)
            return await self.form_or_manual(page, message="RSVP page has no usable form")

        if is_free:
            return self.drop_in("Free Thrive City event - no RSVP required")

        return self.manual(
            "No RSVP or registration option found",
            ErrorCategory.UNKNOWN_ERROR,
            method=RegistrationMethod.UNKNOWN,
        )
