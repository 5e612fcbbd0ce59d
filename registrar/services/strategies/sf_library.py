"""San Francisco Public Library (sfpl.org)."""

from __future__ import annotations

from typing import Any

from registrar.schemas.event import Event
from registrar.schemas.registration import (
    ErrorCategory,
    RegistrationAttemptResult,
    RegistrationMethod,
)
from registrar.services.strategies.base import SiteStrategy
from registrar.services.strategies.forms import FormPlan

# Library forms are short; require more than a bare name + email match
_MIN_FORM_SCORE = 21


class SFLibraryStrategy(SiteStrategy):
    """Library programs are drop-in unless the page carries a sign-up form.

    Popular programs are booked through Eventbrite, which is left to a human.
    """

    name = "sf_library"
    domains = ("sfpl.org",)

    async def analyze(self, event: Event, page: Any) -> FormPlan | RegistrationAttemptResult:
        if await self.detect_third_party(page, ("Eventbrite",)):
            return self.manual(
                "Library program registration is on Eventbrite",
                ErrorCategory.REGISTRATION_CLOSED,
                method=RegistrationMethod.THIRD_PARTY,
            )

        await self.ensure_open(page)

        plan = await self.find_form_plan(page, min_score=_MIN_FORM_SCORE)
        if plan is not None:
            return plan

        return self.drop_in("Library program - no registration required")
