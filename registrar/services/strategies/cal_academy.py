"""California Academy of Sciences (calacademy.org)."""

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
from registrar.services.strategies.base import DROP_IN_PATTERN, FREE_PATTERN, SiteStrategy
from registrar.services.strategies.forms import FormPlan

# Listings sometimes arrive as "https://www.calacademy.orghttps://www.calacademy.org/..."
_DOUBLED_URL = re.compile(r"^https?://(?:www\.)?calacademy\.org(?=https?://)", re.IGNORECASE)

_ADMISSION_PATTERN = re.compile(
    r"general admission|included with (?:museum )?admission|with paid admission"
    r"|buy tickets|purchase tickets|nightlife tickets",
    re.IGNORECASE,
)

_TICKET_LINKS = 'a[href*="/tickets"], a[href*="tickets.calacademy.org"]'


class CalAcademyStrategy(SiteStrategy):
    """Most Academy programs are part of paid general admission.

    Only explicitly free programs with their own reservation form are
    registered automatically.
    """

    name = "cal_academy"
    domains = ("calacademy.org",)

    def prepare_url(self, url: str) -> str:
        return _DOUBLED_URL.sub("", url)

    async def analyze(self, event: Event, page: Any) -> FormPlan | RegistrationAttemptResult:
        await self.ensure_open(page)
        text = await page_reader.page_text(page)

        if _ADMISSION_PATTERN.search(text) or await page_reader.count(page, _TICKET_LINKS) > 0:
            return self.manual(
                "General admission event - tickets must be purchased on calacademy.org",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.TICKET_PURCHASE,
            )

        plan = await self.find_form_plan(page, min_score=15)
        if plan is not None:
            return plan

        if FREE_PATTERN.search(text) and DROP_IN_PATTERN.search(text):
            return self.drop_in("Free Academy program - no reservation required")

        return self.manual(
            "No bookable reservation found on calacademy.org",
            ErrorCategory.UNKNOWN_ERROR,
            method=RegistrationMethod.UNKNOWN,
        )
