"""
Unit Tests for the cli.py entry script.

Tests individual services with mocked subprocesses and database access.
"""

import subprocess
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from cli import main, validate_project_root
from portal.backend.core.exceptions import ConflictError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def _quiet_logging():
    """Keep the CLI from reconfiguring root logging during tests."""
    with patch("cli.setup_logging") as mock_setup:
        yield mock_setup


class TestValidateProjectRoot:
    def test_returns_root_when_marker_exists(self, tmp_path):
        (tmp_path / ".project_root").touch()
        with patch("cli.PROJECT_ROOT", tmp_path):
            assert validate_project_root() == tmp_path

    def test_exits_when_marker_missing(self, tmp_path):
        with patch("cli.PROJECT_ROOT", tmp_path):
            with pytest.raises(SystemExit) as exc_info:
                validate_project_root()
        assert exc_info.value.code == 1


class TestMainCLI:
    def test_help_lists_services(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "--service" in result.output
        assert "create-admin" in result.output

    def test_info_is_default(self, runner):
        result = runner.invoke(main, [])
        assert result.exit_code == 0
        assert "Agency Portal" in result.output
        assert "Services (--service):" in result.output

    def test_log_level_flags(self, runner, _quiet_logging):
        runner.invoke(main, ["--service", "info", "--debug"])
        assert _quiet_logging.call_args.kwargs["level"] == "DEBUG"

        _quiet_logging.reset_mock()
        runner.invoke(main, ["-v"])
        assert _quiet_logging.call_args.kwargs["level"] == "INFO"

    def test_invalid_service(self, runner):
        result = runner.invoke(main, ["--service", "bot"])
        assert result.exit_code != 0
        assert "Invalid value" in result.output


class TestConfigAndHealth:
    def test_config_prints_every_section(self, runner):
        result = runner.invoke(main, ["--service", "config"])
        assert result.exit_code == 0
        for section in ("application", "database", "security", "billing", "jobs"):
            assert f"[{section}]" in result.output
        assert "invoice_number_prefix: INV-" in result.output

    def test_health_passes(self, runner):
        result = runner.invoke(main, ["--service", "health"])
        assert result.exit_code == 0
        assert "Health Check Results" in result.output
        assert "Database models" in result.output


class TestSubprocessServices:
    def test_server_runs_uvicorn(self, runner):
        with patch("cli.subprocess.run") as run:
            result = runner.invoke(main, ["--service", "server", "--port", "8099", "--reload"])

        assert result.exit_code == 0
        cmd = run.call_args.args[0]
        assert "portal.backend.main:app" in cmd
        assert cmd[cmd.index("--port") + 1] == "8099"
        assert "--reload" in cmd

    def test_worker_runs_taskiq(self, runner):
        with patch("cli.subprocess.run") as run:
            runner.invoke(main, ["--service", "worker", "--workers", "3"])

        cmd = run.call_args.args[0]
        assert "portal.backend.tasks.worker:broker" in cmd
        assert cmd[-1] == "3"

    def test_scheduler_lists_tasks(self, runner):
        with patch("cli.subprocess.run"):
            result = runner.invoke(main, ["--service", "scheduler"])

        assert "generate_recurring_invoices: 0 6 * * *" in result.output

    def test_failed_subprocess_exits_with_its_code(self, runner):
        with patch("cli.subprocess.run", side_effect=subprocess.CalledProcessError(3, "uvicorn")):
            result = runner.invoke(main, ["--service", "server"])
        assert result.exit_code == 3

    def test_status_checks_port(self, runner):
        with patch("cli._find_process_on_port", return_value=[]):
            result = runner.invoke(main, ["--service", "server", "--action", "status", "--port", "8099"])
        assert "Server is not running on port 8099." in result.output


class TestMigrate:
    def test_upgrade(self, runner):
        with patch("cli.subprocess.run", return_value=MagicMock(returncode=0)) as run:
            result = runner.invoke(main, ["--service", "migrate", "--migrate-action", "upgrade"])

        assert result.exit_code == 0
        assert run.call_args.args[0][-2:] == ["upgrade", "head"]

    def test_downgrade_defaults_to_previous_revision(self, runner):
        with patch("cli.subprocess.run", return_value=MagicMock(returncode=0)) as run:
            runner.invoke(main, ["--service", "migrate", "--migrate-action", "downgrade"])

        assert run.call_args.args[0][-2:] == ["downgrade", "-1"]

    def test_autogenerate_requires_message(self, runner):
        result = runner.invoke(main, ["--service", "migrate", "--migrate-action", "autogenerate"])
        assert result.exit_code == 1


class TestCreateAdmin:
    def test_requires_email(self, runner):
        result = runner.invoke(main, ["--service", "create-admin", "--password", "long-enough"])
        assert result.exit_code == 1

    def test_creates_admin(self, runner):
        contact = SimpleNamespace(email="root@agency.test", id="c-1")
        with patch("cli._create_admin", AsyncMock(return_value=contact)) as create:
            result = runner.invoke(
                main,
                ["--service", "create-admin", "--email", "root@agency.test", "--password", "long-enough"],
            )

        assert result.exit_code == 0
        assert "Created admin root@agency.test (id: c-1)" in result.output
        create.assert_awaited_once_with("root@agency.test", None, "long-enough", None)

    def test_prompts_for_password(self, runner):
        contact = SimpleNamespace(email="root@agency.test", id="c-1")
        with patch("cli._create_admin", AsyncMock(return_value=contact)) as create:
            runner.invoke(
                main,
                ["--service", "create-admin", "--email", "root@agency.test"],
                input="long-enough\nlong-enough\n",
            )

        assert create.await_args.args[2] == "long-enough"

    def test_conflict_reported(self, runner):
        with patch("cli._create_admin", AsyncMock(side_effect=ConflictError("Admin already exists"))):
            result = runner.invoke(
                main,
                ["--service", "create-admin", "--email", "root@agency.test", "--password", "long-enough"],
            )

        assert result.exit_code == 1
        assert "Admin already exists" in result.output
