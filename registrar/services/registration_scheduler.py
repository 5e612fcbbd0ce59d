"""Periodic registration batches.

Runs ``process_approved_events`` on a fixed interval in a single background
task. A failing batch is logged and the loop carries on with the next tick;
cancelling the task ends the loop.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from registrar.core.logging import get_logger

if TYPE_CHECKING:
    from registrar.services.registration_orchestrator import RegistrationOrchestrator

logger = get_logger(__name__)

# Global task reference for lifecycle management
_scheduler_task: asyncio.Task | None = None


async def registration_loop(
    orchestrator: RegistrationOrchestrator,
    interval_seconds: int = 900,
) -> None:
    """Background loop that registers approved events every ``interval_seconds``.

    Args:
        orchestrator: Orchestrator that processes one batch per tick
        interval_seconds: Sleep duration between batches (default: 15 minutes)
    """
    logger.info("registration_scheduler_started", interval_seconds=interval_seconds)

    while True:
        try:
            summary = await orchestrator.process_approved_events()
            logger.info("registration_scheduler_tick_completed", **summary.model_dump())
            await asyncio.sleep(interval_seconds)
        except asyncio.CancelledError:
            logger.info("registration_scheduler_cancelled")
            break
        except Exception as e:
            logger.error(
                "registration_scheduler_error",
                error=str(e),
                exc_info=True,
                reason="Unexpected error in registration batch - continuing after sleep",
            )
            await asyncio.sleep(interval_seconds)


async def start_registration_scheduler(
    orchestrator: RegistrationOrchestrator,
    interval_seconds: int = 900,
) -> None:
    """Start the registration scheduler background task.

    Logs a warning and does nothing if the scheduler is already running.
    """
    global _scheduler_task

    # Guard: already running
    if _scheduler_task is not None and not _scheduler_task.done():
        logger.warning("registration_scheduler_already_running")
        return

    _scheduler_task = asyncio.create_task(
        registration_loop(orchestrator=orchestrator, interval_seconds=interval_seconds)
    )
    logger.info("registration_scheduler_task_created")


async def stop_registration_scheduler() -> None:
    """Cancel the scheduler task and wait for it. Safe to call when not running."""
    global _scheduler_task

    # Guard: not running
    if _scheduler_task is None:
        logger.warning("registration_scheduler_not_running")
        return

    _scheduler_task.cancel()
    try:
        await _scheduler_task
    except asyncio.CancelledError:
        logger.debug("registration_scheduler_task_cancelled")

    _scheduler_task = None
    logger.info("registration_scheduler_stopped")


def is_scheduler_running() -> bool:
    return _scheduler_task is not None and not _scheduler_task.done()
