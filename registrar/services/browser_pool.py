"""Browser session pool for registration attempts.

One browser process is shared by every attempt in a worker. Each attempt
gets a fresh BrowserContext and Page so cookies and storage never leak
between events, and both are closed on every exit path.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Literal

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from config import Settings
from registrar.core.browser_config import (
    CHROMIUM_IGNORE_DEFAULT_ARGS,
    CHROMIUM_LAUNCH_ARGS,
    REGISTRATION_LOCALE,
    REGISTRATION_TIMEZONE,
    REGISTRATION_USER_AGENT,
    REGISTRATION_VIEWPORT,
)
from registrar.core.logging import get_logger
from registrar.core.metrics import (
    browser_crash_recoveries_total,
    browser_crashes_total,
    browser_page_wait_seconds,
    browser_pages_active,
    browser_pages_closed_total,
    browser_pages_opened_total,
)

logger = get_logger(__name__)

BrowserType = Literal["chromium", "firefox", "webkit"]

__all__ = ["BrowserCrashError", "BrowserPool", "BrowserType"]

_CRASH_KEYWORDS = (
    "connection",
    "closed",
    "disconnected",
    "target closed",
    "browser closed",
    "crash",
)


class BrowserCrashError(Exception):
    """Raised when the shared browser crashes during operation."""

    def __init__(self, message: str, browser_type: BrowserType):
        """Initialize browser crash error.

        Args:
            message: Error message describing the crash
            browser_type: Type of browser that crashed
        """
        super().__init__(message)
        self.browser_type = browser_type


class BrowserPool:
    """Hands out isolated pages backed by one shared browser.

    Usage:
        pool = BrowserPool(settings)
        await pool.initialize()
        async with pool.acquire_page() as page:
            await page.goto("https://example.com")
        await pool.shutdown()
    """

    def __init__(self, settings: Settings):
        """Initialize browser pool.

        Args:
            settings: Application settings with browser and timeout configuration.
        """
        self.settings = settings
        self.browser_type: BrowserType = settings.browser_default_type
        self.headless = settings.browser_headless
        self.max_pages = settings.browser_max_pages
        self.context_timeout = settings.browser_context_timeout
        self.navigation_timeout_ms = settings.registration_navigation_timeout_ms
        self.step_timeout_ms = settings.registration_step_timeout_ms
        self.max_recovery_attempts = settings.browser_max_recovery_attempts
        self.recovery_backoff_base = settings.browser_recovery_backoff_base

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page_semaphore = asyncio.Semaphore(self.max_pages)
        self._lock = asyncio.Lock()
        self._initialized = False
        self._shutting_down = False

        self.recovery_attempts = 0
        self.last_recovery_attempt: datetime | None = None
        self.pages_opened = 0
        self.pages_closed = 0

    @property
    def active_pages(self) -> int:
        return self.pages_opened - self.pages_closed

    async def initialize(self) -> None:
        """Start Playwright and launch the shared browser.

        Raises:
            RuntimeError: If Playwright or the browser fails to start.
        """
        # Guard: already initialized
        if self._initialized:
            logger.warning("browser_pool_already_initialized")
            return

        try:
            logger.info(
                "browser_pool_initializing",
                browser_type=self.browser_type,
                max_pages=self.max_pages,
                headless=self.headless,
            )
            self._playwright = await async_playwright().start()
            self._browser = await self._launch_browser()
            self._initialized = True
            logger.info("browser_pool_initialized")

        except Exception as e:
            logger.error("browser_pool_init_error", error=str(e))
            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                except Exception as cleanup_error:
                    logger.debug("playwright_stop_error_during_cleanup", error=str(cleanup_error))
                finally:
                    self._playwright = None
            raise RuntimeError(f"Failed to initialize browser pool: {e}") from e

    async def _launch_browser(self) -> Browser:
        """Launch a browser of the configured type.

        Raises:
            RuntimeError: If Playwright is not initialized or the launch fails.
        """
        # Guard: playwright not initialized
        if self._playwright is None:
            raise RuntimeError("Playwright not initialized")

        try:
            if self.browser_type == "firefox":
                return await self._playwright.firefox.launch(headless=self.headless)
            if self.browser_type == "webkit":
                return await self._playwright.webkit.launch(headless=self.headless)
            return await self._playwright.chromium.launch(
                headless=self.headless,
                args=CHROMIUM_LAUNCH_ARGS,
                ignore_default_args=CHROMIUM_IGNORE_DEFAULT_ARGS,
            )
        except Exception as e:
            logger.error("browser_launch_error", browser_type=self.browser_type, error=str(e))
            raise RuntimeError(f"Failed to launch {self.browser_type} browser: {e}") from e

    def _is_in_recovery_backoff(self, now: datetime) -> bool:
        # Guard: never attempted recovery
        if self.last_recovery_attempt is None:
            return False
        backoff_seconds = self.recovery_backoff_base**self.recovery_attempts
        return now.timestamp() < self.last_recovery_attempt.timestamp() + backoff_seconds

    async def _relaunch_browser(self) -> None:
        """Replace a crashed browser, respecting recovery limits and backoff.

        Must be called while holding ``_lock``.

        Raises:
            BrowserCrashError: If recovery is exhausted, backing off, or fails.
        """
        now = datetime.now(UTC)
        browser_crashes_total.labels(browser_type=self.browser_type).inc()

        if self.recovery_attempts >= self.max_recovery_attempts:
            raise BrowserCrashError(
                f"Browser not recovered after {self.max_recovery_attempts} attempts",
                browser_type=self.browser_type,
            )

        if self._is_in_recovery_backoff(now):
            raise BrowserCrashError(
                "Browser recovery skipped - still in backoff period",
                browser_type=self.browser_type,
            )

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug("crashed_browser_close_error", error=str(e))

        self.recovery_attempts += 1
        self.last_recovery_attempt = now

        try:
            self._browser = await self._launch_browser()
        except RuntimeError as e:
            logger.error(
                "browser_crash_recovery_failed",
                recovery_attempt=self.recovery_attempts,
                error=str(e),
            )
            raise BrowserCrashError(
                f"Failed to recover from browser crash "
                f"(attempt {self.recovery_attempts}/{self.max_recovery_attempts}): {e}",
                browser_type=self.browser_type,
            ) from e

        browser_crash_recoveries_total.inc()
        logger.info("browser_crash_recovery_successful", recovery_attempt=self.recovery_attempts)
        self.recovery_attempts = 0

    def _looks_like_crash(self, error: Exception) -> bool:
        try:
            if self._browser is not None and not self._browser.is_connected():
                return True
        except Exception:
            logger.debug("browser_connection_check_failed")
        message = str(error).lower()
        return any(keyword in message for keyword in _CRASH_KEYWORDS)

    async def _new_context(self) -> BrowserContext:
        # Guard: browser missing
        if self._browser is None:
            raise RuntimeError("Browser not launched")

        try:
            return await self._browser.new_context(
                user_agent=REGISTRATION_USER_AGENT,
                viewport=REGISTRATION_VIEWPORT,
                locale=REGISTRATION_LOCALE,
                timezone_id=REGISTRATION_TIMEZONE,
            )
        except Exception as e:
            if not self._looks_like_crash(e):
                raise

            logger.error("browser_crash_during_context_creation", error=str(e))
            async with self._lock:
                try:
                    await self._relaunch_browser()
                except BrowserCrashError as recovery_error:
                    logger.warning("browser_recovery_unavailable", error=str(recovery_error))

            raise BrowserCrashError(
                "Browser crashed during context creation", browser_type=self.browser_type
            ) from e

    @asynccontextmanager
    async def acquire_page(self, timeout: float | None = None) -> AsyncIterator[Page]:
        """Acquire an isolated page for one registration attempt.

        The page and its context are closed when the block exits, whether it
        returns normally, raises, or is cancelled.

        Args:
            timeout: Seconds to wait for a free slot. Defaults to
                settings.browser_context_timeout.

        Yields:
            Fresh Page with default timeouts applied.

        Raises:
            RuntimeError: If the pool is not initialized or shutting down.
            TimeoutError: If no slot frees up within the timeout.
            BrowserCrashError: If the browser crashed while creating the context.
        """
        # Guard: pool not initialized
        if not self._initialized:
            raise RuntimeError("Browser pool not initialized. Call initialize() first.")

        # Guard: pool shutting down
        if self._shutting_down:
            raise RuntimeError("Browser pool is shutting down")

        timeout = timeout or self.context_timeout
        wait_started = datetime.now(UTC)

        try:
            await asyncio.wait_for(self._page_semaphore.acquire(), timeout=timeout)
        except TimeoutError:
            logger.error("page_acquire_timeout", timeout=timeout)
            raise TimeoutError(f"Failed to acquire a browser page within {timeout}s") from None

        browser_page_wait_seconds.observe((datetime.now(UTC) - wait_started).total_seconds())

        context: BrowserContext | None = None
        page: Page | None = None
        try:
            context = await self._new_context()
            page = await context.new_page()
            page.set_default_timeout(self.step_timeout_ms)
            page.set_default_navigation_timeout(self.navigation_timeout_ms)

            self.pages_opened += 1
            browser_pages_opened_total.inc()
            browser_pages_active.set(self.active_pages)
            logger.debug("page_acquired", active_pages=self.active_pages)

            yield page

        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug("page_close_error", error=str(e))
                self.pages_closed += 1
                browser_pages_closed_total.inc()
                browser_pages_active.set(self.active_pages)

            if context is not None:
                try:
                    await context.close()
                except Exception as e:
                    logger.debug("context_close_error", error=str(e))

            self._page_semaphore.release()
            logger.debug("page_released", active_pages=self.active_pages)

    async def health_check(self) -> dict[str, Any]:
        """Report whether the shared browser is connected."""
        connected = False
        if self._browser is not None:
            try:
                connected = self._browser.is_connected()
            except Exception as e:
                logger.warning("browser_health_check_failed", error=str(e))

        return {
            "initialized": self._initialized,
            "connected": connected,
            "active_pages": self.active_pages,
            "max_pages": self.max_pages,
            "recovery_attempts": self.recovery_attempts,
        }

    async def shutdown(self) -> None:
        """Close the browser and stop Playwright."""
        # Guard: not initialized
        if not self._initialized:
            logger.warning("browser_pool_not_initialized_for_shutdown")
            return

        logger.info("browser_pool_shutdown_starting", active_pages=self.active_pages)
        self._shutting_down = True

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug("browser_close_error", error=str(e))
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug("playwright_stop_error", error=str(e))
            self._playwright = None

        browser_pages_active.set(0)
        self._initialized = False
        self._shutting_down = False
        logger.info("browser_pool_shutdown_completed")
