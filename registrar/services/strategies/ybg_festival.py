"""Yerba Buena Gardens Festival (ybgfestival.org)."""

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
    FREE_PATTERN,
    MAILTO_SELECTOR,
    SiteStrategy,
)
from registrar.services.strategies.forms import FormPlan

_OPEN_PATTERN = re.compile(r"open to the public|outdoor|on the lawn|bring a blanket", re.IGNORECASE)


class YBGFestivalStrategy(SiteStrategy):
    """Festival performances are free, outdoor and open to everyone."""

    name = "ybg_festival"
    domains = ("ybgfestival.org",)

    async def analyze(self, event: Event, page: Any) -> FormPlan | RegistrationAttemptResult:
        if await self.detect_third_party(page, ("Facebook Events",)):
            return self.manual(
                "RSVP is on a Facebook event",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.THIRD_PARTY,
            )

        await self.ensure_open(page)
        text = await page_reader.page_text(page)

        is_open = DROP_IN_PATTERN.search(text) or _OPEN_PATTERN.search(text)
        if FREE_PATTERN.search(text) and is_open:
            return self.drop_in("Free festival performance, open to the public")

        if await page_reader.count(page, MAILTO_SELECTOR) > 0:
            return self.manual(
                "RSVP by email to the festival organizers",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.EMAIL,
            )

        return await self.form_or_manual(page)
