"""Fallback strategy for sites without dedicated knowledge."""

from __future__ import annotations

from typing import Any

from registrar.schemas.event import Event
from registrar.schemas.registration import RegistrationAttemptResult
from registrar.services.strategies.base import SiteStrategy
from registrar.services.strategies.forms import FormPlan


class GenericStrategy(SiteStrategy):
    """Structural form detection on any site.

    Looks for a plausible registration form (name and email fields, child
    count when present) and fills it. Anything else is handed to a human
    rather than guessed at.
    """

    name = "generic"
    domains = ()

    def can_handle(self, url: str | None) -> bool:
        return True

    async def analyze(self, event: Event, page: Any) -> FormPlan | RegistrationAttemptResult:
        await self.ensure_open(page)
        return await self.form_or_manual(page)
