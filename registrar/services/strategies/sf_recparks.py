"""San Francisco Recreation and Parks (sfrecpark.org)."""

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
from registrar.services.strategies.base import DROP_IN_PATTERN, SiteStrategy
from registrar.services.strategies.forms import FormPlan

_LOGIN_PATTERN = re.compile(
    r"sign in to register|log ?in to register|create an account|sign in to your account",
    re.IGNORECASE,
)
_ACTIVENET_LINKS = 'a[href*="activecommunities.com"], a[href*="activenet"]'


class SFRecParksStrategy(SiteStrategy):
    """Rec and Park classes are booked through an account-based system."""

    name = "sf_recparks"
    domains = ("sfrecpark.org",)

    async def analyze(self, event: Event, page: Any) -> FormPlan | RegistrationAttemptResult:
        text = await page_reader.page_text(page)

        if await page_reader.count(page, 'input[type="password"]') > 0 or _LOGIN_PATTERN.search(
            text
        ):
            return self.manual(
                "Registration requires a Rec and Park account login",
                ErrorCategory.CLIENT_ERROR,
                method=RegistrationMethod.ACCOUNT_REQUIRED,
            )

        if await page_reader.count(page, _ACTIVENET_LINKS) > 0:
            return self.manual(
                "Registration is handled by the ActiveNet booking system",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.THIRD_PARTY,
            )

        await self.ensure_open(page)

        plan = await self.find_form_plan(page, min_score=15)
        if plan is not None:
            return plan

        if DROP_IN_PATTERN.search(text):
            return self.drop_in("Park event is open to drop-ins")

        return self.manual(
            "No registration option found on sfrecpark.org",
            ErrorCategory.UNKNOWN_ERROR,
            method=RegistrationMethod.UNKNOWN,
        )
