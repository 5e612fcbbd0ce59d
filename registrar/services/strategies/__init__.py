"""Site strategies for registering on specific event websites."""

from registrar.services.strategies.base import (
    PageLoadError,
    RegistrationClosedError,
    SiteStrategy,
    hostname_of,
    match_domain,
)
from registrar.services.strategies.registry import (
    DOMAIN_STRATEGIES,
    STRATEGY_CLASSES,
    StrategyRegistry,
)

__all__ = [
    "DOMAIN_STRATEGIES",
    "STRATEGY_CLASSES",
    "PageLoadError",
    "RegistrationClosedError",
    "SiteStrategy",
    "StrategyRegistry",
    "hostname_of",
    "match_domain",
]
