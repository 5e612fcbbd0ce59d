"""Unit tests for BrowserPool."""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from registrar.services.browser_pool import BrowserCrashError, BrowserPool


@pytest.fixture
def pool_settings(settings):
    """Settings with a small page budget."""
    return settings.model_copy(
        update={
            "browser_max_pages": 2,
            "browser_context_timeout": 1,
            "browser_max_recovery_attempts": 2,
            "browser_recovery_backoff_base": 2.0,
        }
    )


def make_page():
    page = MagicMock()
    page.close = AsyncMock()
    return page


@pytest.fixture
def mock_playwright():
    """Create mock playwright."""
    with patch("registrar.services.browser_pool.async_playwright") as mock:
        playwright = AsyncMock()
        mock.return_value.start = AsyncMock(return_value=playwright)

        context = AsyncMock()
        context.new_page = AsyncMock(side_effect=lambda: make_page())
        context.close = AsyncMock()

        browser = AsyncMock()
        browser.is_connected = MagicMock(return_value=True)
        browser.new_context = AsyncMock(return_value=context)
        browser.close = AsyncMock()

        playwright.chromium.launch = AsyncMock(return_value=browser)
        playwright.firefox.launch = AsyncMock(return_value=browser)
        playwright.webkit.launch = AsyncMock(return_value=browser)
        playwright.stop = AsyncMock()

        yield playwright


class TestBrowserPoolLifecycle:
    """Tests for initialize/shutdown."""

    def test_browser_pool_creation(self, pool_settings):
        """Test creating a BrowserPool."""
        pool = BrowserPool(pool_settings)

        assert pool.max_pages == 2
        assert pool.browser_type == "chromium"
        assert pool._initialized is False
        assert pool.active_pages == 0

    async def test_initialize_launches_chromium(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)

        await pool.initialize()

        assert pool._initialized is True
        mock_playwright.chromium.launch.assert_awaited_once()

    async def test_initialize_twice_is_noop(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)

        await pool.initialize()
        await pool.initialize()

        assert mock_playwright.chromium.launch.await_count == 1

    @pytest.mark.parametrize("browser_type", ["firefox", "webkit"])
    async def test_initialize_other_browser_types(
        self, pool_settings, mock_playwright, browser_type
    ):
        pool = BrowserPool(pool_settings.model_copy(update={"browser_default_type": browser_type}))

        await pool.initialize()

        getattr(mock_playwright, browser_type).launch.assert_awaited_once()

    async def test_initialization_failure_stops_playwright(self, pool_settings, mock_playwright):
        """Playwright is stopped if the browser fails to launch."""
        mock_playwright.chromium.launch.side_effect = Exception("no chromium")
        pool = BrowserPool(pool_settings)

        with pytest.raises(RuntimeError, match="Failed to initialize browser pool"):
            await pool.initialize()

        mock_playwright.stop.assert_awaited_once()
        assert pool._initialized is False

    async def test_shutdown(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)
        await pool.initialize()
        browser = pool._browser

        await pool.shutdown()

        browser.close.assert_awaited()
        mock_playwright.stop.assert_awaited_once()
        assert pool._initialized is False

    async def test_shutdown_not_initialized(self, pool_settings):
        pool = BrowserPool(pool_settings)

        await pool.shutdown()

        assert pool._initialized is False


class TestAcquirePage:
    """Scoped pages are always closed and bounded by max_pages."""

    async def test_acquire_page_not_initialized(self, pool_settings):
        pool = BrowserPool(pool_settings)

        with pytest.raises(RuntimeError, match="not initialized"):
            async with pool.acquire_page():
                pass

    async def test_page_and_context_closed_after_use(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)
        await pool.initialize()

        async with pool.acquire_page() as page:
            assert pool.active_pages == 1
            page.set_default_timeout.assert_called_once_with(500)
            page.set_default_navigation_timeout.assert_called_once_with(1000)

        page.close.assert_awaited_once()
        pool._browser.new_context.return_value.close.assert_awaited()
        assert pool.active_pages == 0

    async def test_page_closed_when_block_raises(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)
        await pool.initialize()

        with pytest.raises(ValueError):
            async with pool.acquire_page() as page:
                raise ValueError("strategy failed")

        page.close.assert_awaited_once()
        assert pool.pages_opened == pool.pages_closed == 1

    async def test_page_closed_when_cancelled(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)
        await pool.initialize()
        acquired = asyncio.Event()
        pages = []

        async def hold_page():
            async with pool.acquire_page() as page:
                pages.append(page)
                acquired.set()
                await asyncio.Event().wait()

        task = asyncio.create_task(hold_page())
        await acquired.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        pages[0].close.assert_awaited_once()
        assert pool.active_pages == 0

    async def test_page_budget_times_out(self, pool_settings, mock_playwright):
        """A third page waits for a free slot and gives up after the timeout."""
        pool = BrowserPool(pool_settings)
        await pool.initialize()

        async with pool.acquire_page(), pool.acquire_page():
            with pytest.raises(TimeoutError, match="Failed to acquire a browser page"):
                async with pool.acquire_page(timeout=0.01):
                    pass

        async with pool.acquire_page():
            assert pool.active_pages == 1

    async def test_close_errors_are_swallowed(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)
        await pool.initialize()

        async with pool.acquire_page() as page:
            page.close.side_effect = Exception("already closed")

        assert pool.active_pages == 0


class TestBrowserCrashRecovery:
    async def test_crash_during_context_creation_relaunches(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)
        await pool.initialize()
        browser = pool._browser
        browser.new_context.side_effect = Exception("Target closed")

        with pytest.raises(BrowserCrashError):
            async with pool.acquire_page():
                pass

        assert mock_playwright.chromium.launch.await_count == 2
        assert pool.recovery_attempts == 0

    async def test_non_crash_error_is_reraised(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)
        await pool.initialize()
        browser = pool._browser
        browser.new_context.side_effect = ValueError("bad viewport")

        with pytest.raises(ValueError, match="bad viewport"):
            async with pool.acquire_page():
                pass

    async def test_recovery_gives_up_after_max_attempts(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)
        await pool.initialize()
        pool.recovery_attempts = pool.max_recovery_attempts

        async with pool._lock:
            with pytest.raises(BrowserCrashError, match="not recovered"):
                await pool._relaunch_browser()

    async def test_recovery_respects_backoff(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)
        await pool.initialize()
        pool.recovery_attempts = 1
        pool.last_recovery_attempt = datetime.now(UTC)

        async with pool._lock:
            with pytest.raises(BrowserCrashError, match="backoff"):
                await pool._relaunch_browser()

    async def test_health_check(self, pool_settings, mock_playwright):
        pool = BrowserPool(pool_settings)
        await pool.initialize()

        health = await pool.health_check()

        assert health == {
            "initialized": True,
            "connected": True,
            "active_pages": 0,
            "max_pages": 2,
            "recovery_attempts": 0,
        }
