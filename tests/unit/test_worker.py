"""Unit tests for RegistrationWorker."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from registrar.worker import RegistrationWorker
from registrar.worker import main as worker_main


@pytest.fixture
def sql_store_mock():
    store = MagicMock()
    store.prune_failure_records = AsyncMock(return_value=0)
    return store


@pytest.fixture
def worker_patches():
    """Replace the browser pool and scheduler lifecycle with mocks."""
    with (
        patch(
            "registrar.worker.initialize_browser_pool",
            new_callable=AsyncMock,
            return_value=MagicMock(),
        ) as init_pool,
        patch("registrar.worker.shutdown_browser_pool", new_callable=AsyncMock) as shutdown_pool,
        patch("registrar.worker.start_registration_scheduler", new_callable=AsyncMock) as start,
        patch("registrar.worker.stop_registration_scheduler", new_callable=AsyncMock) as stop,
        patch("registrar.worker._shutdown", True),
    ):
        yield {
            "init_pool": init_pool,
            "shutdown_pool": shutdown_pool,
            "start": start,
            "stop": stop,
        }


class TestRegistrationWorker:
    async def test_run_starts_scheduler_and_tears_down(
        self, settings, sql_store_mock, worker_patches
    ):
        worker = RegistrationWorker(sql_store_mock, settings)

        await worker.run()

        worker_patches["init_pool"].assert_awaited_once_with(settings)
        worker_patches["start"].assert_awaited_once()
        assert worker_patches["start"].await_args.kwargs == {
            "interval_seconds": settings.registration_interval_seconds
        }
        worker_patches["stop"].assert_awaited_once()
        worker_patches["shutdown_pool"].assert_awaited_once()
        assert worker.browser_pool is None

    async def test_setup_prunes_expired_failure_records(self, settings, sql_store_mock):
        with patch("registrar.worker.initialize_browser_pool", new_callable=AsyncMock):
            await RegistrationWorker(sql_store_mock, settings).setup()

        cutoff = sql_store_mock.prune_failure_records.await_args.args[0]
        expected = datetime.now(UTC) - timedelta(hours=settings.failure_history_retention_hours)
        assert abs((cutoff - expected).total_seconds()) < 5

    async def test_setup_failure_still_tears_down(self, settings, sql_store_mock, worker_patches):
        worker_patches["init_pool"].side_effect = RuntimeError("Failed to initialize browser pool")

        await RegistrationWorker(sql_store_mock, settings).run()

        worker_patches["start"].assert_not_awaited()
        worker_patches["shutdown_pool"].assert_awaited_once()

    async def test_metrics_server_started_when_enabled(self, settings, sql_store_mock):
        settings.enable_metrics = True
        settings.metrics_port = 9999

        with (
            patch("registrar.worker.initialize_browser_pool", new_callable=AsyncMock),
            patch("registrar.worker.start_http_server") as mock_server,
        ):
            await RegistrationWorker(sql_store_mock, settings).setup()

        mock_server.assert_called_once_with(9999)


class TestWorkerMain:
    async def test_log_level_override_reaches_logging(self, settings):
        engine = MagicMock()
        engine.dispose = AsyncMock()
        worker = MagicMock()
        worker.run = AsyncMock()

        with (
            patch("registrar.worker.setup_logging") as mock_setup,
            patch("registrar.worker.signal.signal"),
            patch("registrar.worker.get_settings", return_value=settings),
            patch("registrar.worker.create_engine", return_value=engine),
            patch("registrar.worker.RegistrationWorker", return_value=worker),
        ):
            await worker_main(log_level="DEBUG")

        mock_setup.assert_called_once_with(log_level="DEBUG")
        worker.run.assert_awaited_once()
        engine.dispose.assert_awaited_once()
