"""Maps registration URLs to site strategies.

Dispatch is a static domain table consulted in order; anything that does not
match (including missing or unparsable URLs) goes to the generic strategy.
"""

from __future__ import annotations

from config import Settings
from registrar.core.logging import get_logger
from registrar.schemas.event import Event
from registrar.services.payment_guard import PaymentGuard
from registrar.services.strategies.base import SiteStrategy, hostname_of, match_domain
from registrar.services.strategies.cal_academy import CalAcademyStrategy
from registrar.services.strategies.chase_center import ChaseCenterStrategy
from registrar.services.strategies.community_events import CommunityEventsStrategy
from registrar.services.strategies.exploratorium import ExploratoriumStrategy
from registrar.services.strategies.funcheap_sf import FunCheapStrategy
from registrar.services.strategies.generic import GenericStrategy
from registrar.services.strategies.sf_library import SFLibraryStrategy
from registrar.services.strategies.sf_recparks import SFRecParksStrategy
from registrar.services.strategies.ybg_festival import YBGFestivalStrategy

logger = get_logger(__name__)

__all__ = ["DOMAIN_STRATEGIES", "STRATEGY_CLASSES", "StrategyRegistry"]

STRATEGY_CLASSES: tuple[type[SiteStrategy], ...] = (
    CalAcademyStrategy,
    ChaseCenterStrategy,
    ExploratoriumStrategy,
    SFLibraryStrategy,
    SFRecParksStrategy,
    FunCheapStrategy,
    YBGFestivalStrategy,
    CommunityEventsStrategy,
    GenericStrategy,
)

DOMAIN_STRATEGIES: dict[str, str] = {
    domain: strategy_cls.name
    for strategy_cls in STRATEGY_CLASSES
    for domain in strategy_cls.domains
}


class StrategyRegistry:
    """Holds one instance of every strategy and resolves URLs to them."""

    def __init__(self, settings: Settings, payment_guard: PaymentGuard):
        self._strategies: dict[str, SiteStrategy] = {
            strategy_cls.name: strategy_cls(settings, payment_guard)
            for strategy_cls in STRATEGY_CLASSES
        }
        self._fallback = self._strategies[GenericStrategy.name]

    @property
    def strategies(self) -> list[SiteStrategy]:
        return list(self._strategies.values())

    def get(self, name: str) -> SiteStrategy | None:
        return self._strategies.get(name)

    def get_strategy_for_url(self, url: str | None) -> SiteStrategy:
        """Resolve the strategy for a registration URL.

        Args:
            url: Registration URL, possibly missing or malformed

        Returns:
            Matching site strategy, or the generic strategy
        """
        host = hostname_of(url)
        # Guard: unparsable URL
        if host is None:
            logger.debug("strategy_fallback_unparsable_url", url=url)
            return self._fallback

        for domain, name in DOMAIN_STRATEGIES.items():
            if match_domain(host, domain):
                return self._strategies[name]

        logger.debug("strategy_fallback_unknown_domain", host=host)
        return self._fallback

    def get_strategy_for_event(self, event: Event) -> SiteStrategy:
        strategy = self.get_strategy_for_url(event.registration_url)
        logger.info(
            "strategy_selected",
            event_id=event.id,
            strategy=strategy.name,
            url=event.registration_url,
        )
        return strategy
