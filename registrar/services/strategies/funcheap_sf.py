"""Funcheap SF listings (sf.funcheap.com)."""

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
from registrar.services.strategies.base import (
    DROP_IN_PATTERN,
    SiteStrategy,
    hostname_of,
    match_domain,
)
from registrar.services.strategies.forms import FormPlan

_PROMO_PATTERN = re.compile(r"promo code|discount code|coupon code|use code", re.IGNORECASE)
_RSVP_LINKS = 'a:has-text("RSVP"), a:has-text("Register"), a[href*="rsvp"]'


class FunCheapStrategy(SiteStrategy):
    """Funcheap is an aggregator: it links out to the real organizer.

    Only events that need nothing (drop-in) or that embed a form on the
    listing itself are handled automatically.
    """

    name = "funcheap_sf"
    domains = ("funcheap.com",)

    async def analyze(self, event: Event, page: Any) -> FormPlan | RegistrationAttemptResult:
        if await self.detect_third_party(page, ("Eventbrite",)):
            return self.manual(
                "RSVP through Eventbrite required",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.THIRD_PARTY,
            )

        await self.ensure_open(page)
        text = await page_reader.page_text(page)

        if _PROMO_PATTERN.search(text):
            return self.manual(
                "Free entry needs a promo code at checkout",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.TICKET_PURCHASE,
            )

        if DROP_IN_PATTERN.search(text):
            return self.drop_in("Funcheap listing says no RSVP is needed")

        rsvp_href = await page_reader.first_href(page, _RSVP_LINKS)
        rsvp_host = hostname_of(rsvp_href) if rsvp_href and "://" in rsvp_href else None
        if rsvp_host and not match_domain(rsvp_host, "funcheap.com"):
            return self.manual(
                f"RSVP is handled by the organizer at {rsvp_host}",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.RSVP_LINK,
            )

        return await self.form_or_manual(page)
