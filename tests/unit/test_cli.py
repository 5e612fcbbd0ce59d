"""Unit tests for the command line entry point."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import main as cli
from registrar.schemas.registration import BatchSummary, RegistrationAttemptResult


class TestBuildParser:
    def test_register_command(self):
        args = cli.build_parser().parse_args(["register", "evt-1"])

        assert args.command == "register"
        assert args.event_id == "evt-1"
        assert args.log_level is None

    def test_global_log_level(self):
        args = cli.build_parser().parse_args(["--log-level", "DEBUG", "run-once"])

        assert args.command == "run-once"
        assert args.log_level == "DEBUG"

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_register_requires_event_id(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["register"])


class TestMain:
    def test_run_once_dispatch(self):
        with (
            patch("main.setup_logging") as mock_setup,
            patch("main._with_orchestrator", new_callable=AsyncMock, return_value=0) as run,
        ):
            assert cli.main(["--log-level", "warning", "run-once"]) == 0

        mock_setup.assert_called_once_with(log_level="warning")
        run.assert_awaited_once_with(cli._run_once)

    def test_worker_dispatch(self):
        with patch("main.worker_main", new_callable=AsyncMock) as worker:
            assert cli.main(["worker"]) == 0

        worker.assert_awaited_once_with(log_level=None)

    def test_worker_honours_log_level(self):
        with patch("main.worker_main", new_callable=AsyncMock) as worker:
            assert cli.main(["--log-level", "DEBUG", "worker"]) == 0

        worker.assert_awaited_once_with(log_level="DEBUG")


class TestCommands:
    async def test_run_once_prints_summary(self, capsys):
        orchestrator = MagicMock()
        orchestrator.process_approved_events = AsyncMock(
            return_value=BatchSummary(processed=2, registered=1, manual_required=1)
        )

        assert await cli._run_once(orchestrator, MagicMock()) == 0

        assert json.loads(capsys.readouterr().out)["registered"] == 1

    async def test_register_unknown_event(self):
        store = MagicMock()
        store.get_event = AsyncMock(return_value=None)
        orchestrator = MagicMock()
        orchestrator.register_for_event = AsyncMock()

        assert await cli._register_one("missing")(orchestrator, store) == 2
        orchestrator.register_for_event.assert_not_awaited()

    async def test_register_exit_code_follows_result(self, make_event, capsys):
        store = MagicMock()
        store.get_event = AsyncMock(return_value=make_event())
        orchestrator = MagicMock()
        orchestrator.register_for_event = AsyncMock(
            return_value=RegistrationAttemptResult.succeeded(
                "generic", "Registered", confirmation_id="ABC12345"
            )
        )

        assert await cli._register_one("evt-1")(orchestrator, store) == 0
        assert json.loads(capsys.readouterr().out)["confirmation_id"] == "ABC12345"
