"""Exploratorium (exploratorium.edu)."""

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
from registrar.services.strategies.base import SiteStrategy
from registrar.services.strategies.forms import FormPlan

_MEMBER_PRICING = re.compile(r"non-?members?\s*[:$]|members?\s*:\s*\$|member price", re.IGNORECASE)
_ADMISSION_PATTERN = re.compile(
    r"included with (?:museum )?admission|with paid admission|admission required", re.IGNORECASE
)
_TICKET_LINKS = 'a[href*="/tickets"], a[href*="/buy"], a:has-text("Buy Tickets")'


class ExploratoriumStrategy(SiteStrategy):
    """Exploratorium programs are mostly ticketed; free community nights use a form."""

    name = "exploratorium"
    domains = ("exploratorium.edu",)

    async def analyze(self, event: Event, page: Any) -> FormPlan | RegistrationAttemptResult:
        await self.ensure_open(page)
        text = await page_reader.page_text(page)

        if _MEMBER_PRICING.search(text):
            return self.manual(
                "Member and non-member pricing - ticket purchase required",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.TICKET_PURCHASE,
            )

        if await page_reader.count(page, _TICKET_LINKS) > 0:
            return self.manual(
                "Exploratorium tickets must be bought online",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.TICKET_PURCHASE,
            )

        if _ADMISSION_PATTERN.search(text):
            return self.manual(
                "Program is included with paid museum admission",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.TICKET_PURCHASE,
            )

        return await self.form_or_manual(page, min_score=15)
