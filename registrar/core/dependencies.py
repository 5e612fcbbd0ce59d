"""Wiring for the registration services.

Builds the object graph used by the worker and the CLI and keeps the shared
browser pool as a process-wide singleton.
"""

from __future__ import annotations

from config import Settings, get_settings
from registrar.services.browser_pool import BrowserPool
from registrar.services.payment_guard import PaymentGuard
from registrar.services.registration_orchestrator import (
    PageProvider,
    RegistrationOrchestrator,
    RegistrationStore,
)
from registrar.services.retry_engine import RetryEngine
from registrar.services.strategies.registry import StrategyRegistry

# Global browser pool instance (singleton pattern)
_browser_pool: BrowserPool | None = None


def get_browser_pool(settings: Settings | None = None) -> BrowserPool:
    """Get the shared browser pool, creating it on first use.

    The pool is created once and reused; it is initialized at startup and
    shut down at exit.
    """
    global _browser_pool

    # Guard: return existing instance if available
    if _browser_pool is not None:
        return _browser_pool

    _browser_pool = BrowserPool(settings=settings or get_settings())
    return _browser_pool


async def initialize_browser_pool(settings: Settings | None = None) -> BrowserPool:
    """Create and start the shared browser pool."""
    pool = get_browser_pool(settings)
    await pool.initialize()
    return pool


async def shutdown_browser_pool() -> None:
    """Shut the shared browser pool down. Safe to call when it was never created."""
    global _browser_pool
    if _browser_pool is not None:
        await _browser_pool.shutdown()
        _browser_pool = None


def create_orchestrator(
    settings: Settings,
    store: RegistrationStore,
    page_provider: PageProvider,
) -> RegistrationOrchestrator:
    """Assemble an orchestrator with its guard, registry and retry engine.

    Args:
        settings: Application settings
        store: Persistence for events, history and failure records
        page_provider: Source of browser pages (the shared BrowserPool in production)

    Returns:
        Ready-to-use RegistrationOrchestrator
    """
    payment_guard = PaymentGuard()
    return RegistrationOrchestrator(
        settings=settings,
        store=store,
        page_provider=page_provider,
        registry=StrategyRegistry(settings, payment_guard),
        retry_engine=RetryEngine(settings, failure_sink=store),
        payment_guard=payment_guard,
    )
