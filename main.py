"""Family Event Registrar command line.

Usage:
    python main.py worker              # run the periodic registration worker
    python main.py run-once            # register every approved event once
    python main.py register EVENT_ID   # register one event now
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from config import get_settings
from registrar.core.dependencies import (
    create_orchestrator,
    initialize_browser_pool,
    shutdown_browser_pool,
)
from registrar.core.logging import get_logger, setup_logging
from registrar.db.session import create_engine
from registrar.db.store import SqlRegistrationStore
from registrar.services.registration_orchestrator import RegistrationOrchestrator
from registrar.worker import main as worker_main

logger = get_logger(__name__)


async def _with_orchestrator(
    action: Callable[[RegistrationOrchestrator, SqlRegistrationStore], Awaitable[int]],
) -> int:
    """Run ``action`` with a started browser pool and a SQL store, then clean up."""
    settings = get_settings()
    engine = create_engine(settings)
    store = SqlRegistrationStore(engine)
    try:
        pool = await initialize_browser_pool(settings)
        orchestrator = create_orchestrator(settings, store, pool)
        return await action(orchestrator, store)
    finally:
        await shutdown_browser_pool()
        await engine.dispose()


async def _run_once(orchestrator: RegistrationOrchestrator, store: SqlRegistrationStore) -> int:
    summary = await orchestrator.process_approved_events()
    _print_json(summary.model_dump())
    return 0


def _register_one(
    event_id: str,
) -> Callable[[RegistrationOrchestrator, SqlRegistrationStore], Awaitable[int]]:
    async def action(orchestrator: RegistrationOrchestrator, store: SqlRegistrationStore) -> int:
        event = await store.get_event(event_id)
        # Guard: unknown event
        if event is None:
            logger.error("event_not_found", event_id=event_id)
            return 2

        result = await orchestrator.register_for_event(event)
        _print_json(result.model_dump(mode="json"))
        return 0 if result.success else 1

    return action


def _print_json(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="registrar",
        description="Register the family for approved, free events.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("worker", help="Run the periodic registration worker.")
    subparsers.add_parser("run-once", help="Process every approved event once and exit.")

    register = subparsers.add_parser("register", help="Register a single event now.")
    register.add_argument("event_id", help="ID of an approved event.")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse CLI arguments and dispatch to the chosen command."""
    args = build_parser().parse_args(argv)

    if args.command == "worker":
        asyncio.run(worker_main(log_level=args.log_level))
        return 0

    setup_logging(log_level=args.log_level)

    if args.command == "run-once":
        return asyncio.run(_with_orchestrator(_run_once))
    return asyncio.run(_with_orchestrator(_register_one(args.event_id)))


if __name__ == "__main__":
    sys.exit(main())
