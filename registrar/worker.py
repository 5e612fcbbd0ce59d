"""Registration worker.

This worker:
1. Launches the shared browser
2. Starts the periodic registration scheduler
3. Registers approved events every ``registration_interval_seconds``
4. Shuts down cleanly on SIGINT / SIGTERM
"""

import asyncio
import signal
from datetime import UTC, datetime, timedelta
from typing import Any

from prometheus_client import start_http_server

from config import Settings, get_settings
from registrar.core.dependencies import (
    create_orchestrator,
    initialize_browser_pool,
    shutdown_browser_pool,
)
from registrar.core.logging import get_logger, setup_logging
from registrar.db.session import create_engine
from registrar.db.store import SqlRegistrationStore
from registrar.services.browser_pool import BrowserPool
from registrar.services.registration_scheduler import (
    start_registration_scheduler,
    stop_registration_scheduler,
)

logger = get_logger(__name__)

# Global shutdown flag
_shutdown = False

_SHUTDOWN_POLL_SECONDS = 1.0


def signal_handler(signum: int, frame: Any) -> None:
    """Handle shutdown signals gracefully."""
    global _shutdown
    logger.info("shutdown_signal_received", signal=signum)
    _shutdown = True


class RegistrationWorker:
    """Runs registration batches until asked to stop.

    Uses dependency injection for testability.
    """

    def __init__(self, store: SqlRegistrationStore, settings: Settings):
        """Initialize worker with injected dependencies.

        Args:
            store: SQL-backed registration store
            settings: Application settings
        """
        self.store = store
        self.settings = settings
        self.browser_pool: BrowserPool | None = None

    async def setup(self) -> None:
        """Launch the browser and prune expired failure records."""
        logger.info("worker_setup_starting")

        if self.settings.enable_metrics:
            start_http_server(self.settings.metrics_port)
            logger.info("metrics_server_started", port=self.settings.metrics_port)

        self.browser_pool = await initialize_browser_pool(self.settings)

        cutoff = datetime.now(UTC) - timedelta(hours=self.settings.failure_history_retention_hours)
        await self.store.prune_failure_records(cutoff)

        logger.info("worker_setup_complete")

    async def teardown(self) -> None:
        """Stop the scheduler and release the browser."""
        logger.info("worker_teardown_starting")

        await stop_registration_scheduler()
        await shutdown_browser_pool()
        self.browser_pool = None

        logger.info("worker_teardown_complete")

    async def run(self) -> None:
        """Run the worker until a shutdown signal arrives."""
        logger.info("worker_starting")

        try:
            await self.setup()

            # Guard: setup did not produce a browser pool
            if self.browser_pool is None:
                logger.error("browser_pool_not_initialized")
                return

            orchestrator = create_orchestrator(self.settings, self.store, self.browser_pool)
            await start_registration_scheduler(
                orchestrator, interval_seconds=self.settings.registration_interval_seconds
            )

            while not _shutdown:
                await asyncio.sleep(_SHUTDOWN_POLL_SECONDS)

            logger.info("worker_main_loop_exited")

        except Exception as e:
            logger.error("worker_fatal_error", error=str(e), exc_info=True)
        finally:
            await self.teardown()


async def main(log_level: str | None = None) -> None:
    """Main entry point for the worker; ``log_level`` overrides settings.log_level."""
    setup_logging(log_level=log_level)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    settings = get_settings()

    logger.info("initializing_worker_dependencies")
    engine = create_engine(settings)
    worker = RegistrationWorker(store=SqlRegistrationStore(engine), settings=settings)

    try:
        await worker.run()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
