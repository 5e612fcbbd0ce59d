#!/usr/bin/env python3
"""Apply or inspect the registrar's Alembic migrations.

Run before the registration worker starts so the events, history and
failure record tables exist.

Usage:
    python scripts/run_migrations.py up                 # upgrade to head
    python scripts/run_migrations.py up --revision ID   # upgrade to a revision
    python scripts/run_migrations.py down --steps 1     # roll back one revision
    python scripts/run_migrations.py status             # print the current revision
"""

import argparse
import sys
from pathlib import Path

from alembic.config import Config

from alembic import command

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from registrar.core.logging import get_logger, setup_logging  # noqa: E402

logger = get_logger(__name__)


def load_config() -> Config:
    """Alembic config rooted at the project, independent of the working directory."""
    alembic_ini = project_root / "alembic.ini"
    # Guard: missing config
    if not alembic_ini.exists():
        logger.error("alembic_config_not_found", path=str(alembic_ini))
        sys.exit(1)

    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    return alembic_cfg


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Registrar database migrations")
    parser.add_argument("command", choices=["up", "down", "status"], help="Migration command")
    parser.add_argument(
        "--revision",
        default="head",
        help="Target revision for 'up' (default: head)",
    )
    parser.add_argument(
        "--steps",
        type=int,
        default=1,
        help="Number of revisions to roll back for 'down'",
    )
    return parser


def run(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    alembic_cfg = load_config()

    try:
        if args.command == "up":
            logger.info("migration_upgrade_start", revision=args.revision)
            command.upgrade(alembic_cfg, args.revision)
        elif args.command == "down":
            logger.info("migration_downgrade_start", steps=args.steps)
            command.downgrade(alembic_cfg, f"-{args.steps}")
        else:
            command.current(alembic_cfg, verbose=True)

        logger.info("migration_complete", command=args.command)

    except Exception as e:
        logger.error(
            "migration_failed",
            command=args.command,
            error=str(e),
            error_type=type(e).__name__,
        )
        sys.exit(1)


if __name__ == "__main__":
    setup_logging()
    run()
