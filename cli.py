#!/usr/bin/env python3
"""
Agency Portal CLI.

Primary entry point for all application operations.
Use --service to select what to run, --action to control lifecycle.

Usage:
    python cli.py --help
    python cli.py --service server --verbose
    python cli.py --service server --action stop
    python cli.py --service config
    python cli.py --service migrate --migrate-action upgrade
    python cli.py --service create-admin --email admin@example.com --password ...
"""

import asyncio
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

import click
import structlog

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from portal.backend.core.logging import get_logger, setup_logging

LONG_RUNNING_SERVICES = {"server", "worker", "scheduler"}


def validate_project_root() -> Path:
    """Validate that we're running from the project root."""
    if not (PROJECT_ROOT / ".project_root").exists():
        click.echo(
            click.style("Error: .project_root not found. Run from project root.", fg="red"),
            err=True,
        )
        sys.exit(1)
    return PROJECT_ROOT


def _fail(message: str) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _find_process_on_port(port: int) -> list[int]:
    """Find PIDs listening on a port."""
    result = subprocess.run(
        ["lsof", "-ti", f":{port}"],
        capture_output=True, text=True,
    )
    pids = result.stdout.strip().split("\n")
    return [int(p) for p in pids if p.strip()]


def _service_stop(logger, service: str, port: int) -> None:
    """Stop a running service by finding its process on the port."""
    pids = _find_process_on_port(port)
    if not pids:
        click.echo(f"No {service} running on port {port}.")
        return

    for pid in pids:
        os.kill(pid, signal.SIGINT)
        logger.info("Sent SIGINT", extra={"service": service, "pid": pid, "port": port})

    click.echo(f"{service.title()} on port {port} stopped (PID: {', '.join(str(p) for p in pids)}).")


def _service_status(service: str, port: int) -> None:
    pids = _find_process_on_port(port)
    if pids:
        click.echo(f"{service.title()} is running on port {port} (PID: {', '.join(str(p) for p in pids)}).")
    else:
        click.echo(f"{service.title()} is not running on port {port}.")


def _get_service_port(port: int | None) -> int:
    if port is not None:
        return port
    from portal.backend.core.config import get_app_config
    return get_app_config().application.server.port


def _run_subprocess(logger, cmd: list[str], name: str) -> None:
    """Run a long-running child process until it exits or Ctrl+C."""
    try:
        subprocess.run(cmd, check=True, cwd=PROJECT_ROOT)
    except KeyboardInterrupt:
        logger.info(f"{name} stopped")
    except subprocess.CalledProcessError as e:
        logger.error(f"{name} failed to start", extra={"exit_code": e.returncode})
        sys.exit(e.returncode)


@click.command()
@click.option(
    "--service", "-s",
    type=click.Choice(["server", "worker", "scheduler", "health", "config", "test", "info", "migrate", "create-admin"]),
    default="info",
    help="Service or command to run.",
)
@click.option(
    "--action", "-a",
    type=click.Choice(["start", "stop", "restart", "status"]),
    default="start",
    help="Lifecycle action for long-running services (server, worker, scheduler).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output (INFO level logging).")
@click.option("--debug", "-d", is_flag=True, help="Enable debug output (DEBUG level logging).")
@click.option("--host", default=None, help="Server host.")
@click.option("--port", default=None, type=int, help="Server port.")
@click.option("--reload", is_flag=True, help="Enable auto-reload (server only).")
@click.option(
    "--test-type",
    type=click.Choice(["all", "unit", "integration"]),
    default="all",
    help="Test type to run.",
)
@click.option("--coverage", is_flag=True, help="Run tests with coverage.")
@click.option(
    "--migrate-action",
    type=click.Choice(["upgrade", "downgrade", "current", "history", "autogenerate"]),
    default="current",
    help="Migration action.",
)
@click.option("--revision", default="head", help="Target revision for upgrade/downgrade.")
@click.option("-m", "--message", default=None, help="Migration message (for autogenerate).")
@click.option("--workers", default=1, type=int, help="Number of worker processes.")
@click.option("--email", default=None, help="Admin email (create-admin).")
@click.option("--name", default=None, help="Admin display name (create-admin).")
@click.option("--password", default=None, help="Admin password (create-admin). Prompted when omitted.")
@click.option("--org-id", default=None, help="Home organization of the admin (create-admin).")
def main(
    service: str,
    action: str,
    verbose: bool,
    debug: bool,
    host: str | None,
    port: int | None,
    reload: bool,
    test_type: str,
    coverage: bool,
    migrate_action: str,
    revision: str,
    message: str | None,
    workers: int,
    email: str | None,
    name: str | None,
    password: str | None,
    org_id: str | None,
) -> None:
    """
    Agency Portal CLI.

    Use --service to select what to run. For long-running services
    (server, worker, scheduler), use --action to control lifecycle
    (start/stop/restart/status).

    \b
    Examples:
        python cli.py --service server --reload --verbose
        python cli.py --service server --action restart --port 8099
        python cli.py --service worker --workers 2 --verbose
        python cli.py --service scheduler --verbose
        python cli.py --service health
        python cli.py --service config
        python cli.py --service test --test-type unit --coverage
        python cli.py --service migrate --migrate-action upgrade
        python cli.py --service migrate --migrate-action downgrade --revision -1
        python cli.py --service create-admin --email admin@example.com --name Admin
    """
    validate_project_root()

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    setup_logging(level=log_level, format_type="console")
    structlog.contextvars.bind_contextvars(source="cli")
    logger = get_logger(__name__)
    logger.debug("CLI invoked", extra={"service": service, "action": action, "log_level": log_level})

    if service in LONG_RUNNING_SERVICES and action != "start":
        service_port = _get_service_port(port)
        if action == "stop":
            _service_stop(logger, service, service_port)
            return
        elif action == "status":
            _service_status(service, service_port)
            return
        elif action == "restart":
            _service_stop(logger, service, service_port)
            time.sleep(2)

    if service == "server":
        run_server(logger, host, port, reload)
    elif service == "worker":
        run_worker(logger, workers)
    elif service == "scheduler":
        run_scheduler(logger)
    elif service == "health":
        check_health(logger)
    elif service == "config":
        show_config(logger)
    elif service == "test":
        run_tests(logger, test_type, coverage)
    elif service == "info":
        show_info(logger)
    elif service == "migrate":
        run_migrations(logger, migrate_action, revision, message)
    elif service == "create-admin":
        create_admin(logger, email, name, password, org_id)


def run_server(logger, host: str | None, port: int | None, reload: bool) -> None:
    """Start the FastAPI server under uvicorn."""
    from portal.backend.core.config import get_app_config

    try:
        server_config = get_app_config().application.server
    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        _fail("Could not load config/settings/application.yaml.")

    server_host = host or server_config.host
    server_port = port or server_config.port
    logger.info("Starting server", extra={"host": server_host, "port": server_port, "reload": reload})

    cmd = [
        sys.executable, "-m", "uvicorn",
        "portal.backend.main:app",
        "--host", server_host,
        "--port", str(server_port),
    ]
    if reload:
        cmd.append("--reload")

    click.echo(f"Starting server at http://{server_host}:{server_port}")
    click.echo("Press Ctrl+C to stop\n")
    _run_subprocess(logger, cmd, "Server")


def _check_redis_configured(logger) -> None:
    try:
        from portal.backend.core.config import get_redis_url
        redis_url = get_redis_url()
        logger.debug("Redis configured", extra={"redis_url": redis_url.split("@")[-1]})
    except Exception as e:
        logger.error("Failed to load Redis configuration", extra={"error": str(e)})
        _fail(f"Redis not configured: {e}")


def run_worker(logger, workers: int) -> None:
    """Start the taskiq worker that executes background jobs."""
    logger.info("Starting background task worker", extra={"workers": workers})
    _check_redis_configured(logger)

    cmd = [
        sys.executable, "-m", "taskiq",
        "worker",
        "portal.backend.tasks.worker:broker",
        "--workers", str(workers),
    ]
    click.echo(f"Starting taskiq worker with {workers} worker(s)")
    click.echo("Press Ctrl+C to stop\n")
    _run_subprocess(logger, cmd, "Worker")


def run_scheduler(logger) -> None:
    """Start the taskiq scheduler for the periodic jobs."""
    logger.info("Starting task scheduler")
    _check_redis_configured(logger)

    from portal.backend.tasks.scheduled import SCHEDULED_TASKS

    click.echo("Scheduled tasks:")
    for task_name, config in SCHEDULED_TASKS.items():
        click.echo(f"  - {task_name}: {config['schedule'][0].get('cron', 'N/A')}")
    click.echo()

    cmd = [
        sys.executable, "-m", "taskiq",
        "scheduler",
        "portal.backend.tasks.scheduler:scheduler",
    ]
    click.echo("Starting taskiq scheduler")
    click.echo("WARNING: Run only ONE scheduler instance to avoid duplicate task execution")
    click.echo("Press Ctrl+C to stop\n")
    _run_subprocess(logger, cmd, "Scheduler")


def check_health(logger) -> None:
    """Check that configuration loads and the application imports."""
    click.echo("Checking application health...\n")
    checks: list[tuple[str, bool, str | None]] = []

    try:
        from portal.backend.core.config import get_app_config
        app_config = get_app_config()
        checks.append(("YAML configuration", True, f"App: {app_config.application.name}"))
    except Exception as e:
        checks.append(("YAML configuration", False, str(e)))
        logger.error("Configuration failed", extra={"error": str(e)})

    try:
        from portal.backend.core.config import get_settings
        get_settings()
        checks.append(("Secrets (config/.env)", True, None))
    except Exception as e:
        checks.append(("Secrets (config/.env)", False, str(e)))
        logger.warning("Secrets not configured", extra={"error": str(e)})

    try:
        from portal.backend.main import get_app
        app = get_app()
        checks.append(("FastAPI application", True, f"{len(app.routes)} routes"))
    except Exception as e:
        checks.append(("FastAPI application", False, str(e)))
        logger.error("FastAPI app failed", extra={"error": str(e)})

    try:
        from portal.backend.models import Base
        checks.append(("Database models", True, f"{len(Base.metadata.tables)} tables"))
    except Exception as e:
        checks.append(("Database models", False, str(e)))
        logger.error("Database models failed", extra={"error": str(e)})

    click.echo("Health Check Results:")
    click.echo("-" * 50)
    all_passed = True
    for check_name, passed, detail in checks:
        status = click.style("PASS", fg="green") if passed else click.style("FAIL", fg="red")
        detail_str = f" ({detail})" if detail else ""
        click.echo(f"  {status}  {check_name}{detail_str}")
        all_passed = all_passed and passed
    click.echo("-" * 50)

    if all_passed:
        click.echo(click.style("\nAll checks passed!", fg="green"))
    else:
        click.echo(click.style("\nSome checks failed. See details above.", fg="yellow"))
        sys.exit(1)


def show_config(logger) -> None:
    """Print the validated YAML configuration, one section per file."""
    from portal.backend.core.config import get_app_config

    try:
        app_config = get_app_config()
    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        _fail(f"Error loading configuration: {e}")

    sections = (
        "application", "database", "logging", "features",
        "security", "integrations", "billing", "jobs",
    )
    for section in sections:
        click.echo(f"\n[{section}]")
        click.echo("-" * 40)
        _echo_mapping(getattr(app_config, section).model_dump(), indent=2)

    logger.info("Configuration displayed successfully")


def _echo_mapping(values: dict, indent: int) -> None:
    pad = " " * indent
    for key, value in values.items():
        if isinstance(value, dict):
            click.echo(f"{pad}{key}:")
            _echo_mapping(value, indent + 2)
        else:
            click.echo(f"{pad}{key}: {value}")


def run_tests(logger, test_type: str, coverage: bool) -> None:
    """Run the test suite."""
    logger.info("Running tests", extra={"type": test_type, "coverage": coverage})

    cmd = [sys.executable, "-m", "pytest"]
    if test_type == "unit":
        cmd.append("tests/unit")
    elif test_type == "integration":
        cmd.append("tests/integration")
    else:
        cmd.append("tests/")
    cmd.append("-v")
    if coverage:
        cmd.extend(["--cov=portal/backend", "--cov-report=term-missing"])

    click.echo(f"Running: {' '.join(cmd)}\n")
    try:
        result = subprocess.run(cmd, cwd=PROJECT_ROOT)
        sys.exit(result.returncode)
    except FileNotFoundError:
        logger.error("pytest not found. Install with: pip install -e '.[test]'")
        sys.exit(1)


def run_migrations(logger, migrate_action: str, revision: str, message: str | None) -> None:
    """Run database migrations using Alembic."""
    logger.info("Running migrations", extra={"action": migrate_action, "revision": revision})

    alembic_ini = PROJECT_ROOT / "portal" / "backend" / "migrations" / "alembic.ini"
    if not alembic_ini.exists():
        _fail("portal/backend/migrations/alembic.ini not found.")

    cmd = [sys.executable, "-m", "alembic", "-c", str(alembic_ini)]

    if migrate_action == "upgrade":
        cmd.extend(["upgrade", revision])
        click.echo(f"Upgrading database to revision: {revision}")
    elif migrate_action == "downgrade":
        # "head" is meaningless as a downgrade target
        target = "-1" if revision == "head" else revision
        cmd.extend(["downgrade", target])
        click.echo(f"Downgrading database to revision: {target}")
    elif migrate_action == "current":
        cmd.append("current")
        click.echo("Showing current database revision...")
    elif migrate_action == "history":
        cmd.extend(["history", "--verbose"])
        click.echo("Showing migration history...")
    elif migrate_action == "autogenerate":
        if not message:
            _fail("--message/-m required for autogenerate.")
        cmd.extend(["revision", "--autogenerate", "-m", message])
        click.echo(f"Generating migration: {message}")

    click.echo()
    try:
        result = subprocess.run(cmd, cwd=PROJECT_ROOT)
    except FileNotFoundError:
        logger.error("alembic not found. Install with: pip install -e .")
        sys.exit(1)
    if result.returncode != 0:
        logger.error("Migration failed", extra={"exit_code": result.returncode})
        sys.exit(result.returncode)
    logger.info("Migration completed successfully")


async def _create_admin(email: str, name: str | None, password: str, org_id: str | None):
    from portal.backend.core.database import get_engine, session_scope
    from portal.backend.services.admin import AdminService

    try:
        async with session_scope() as session:
            return await AdminService(session).create_platform_admin(email, name, password, org_id)
    finally:
        await get_engine().dispose()


def create_admin(
    logger,
    email: str | None,
    name: str | None,
    password: str | None,
    org_id: str | None,
) -> None:
    """Create a platform admin contact that can log in right away."""
    from portal.backend.core.exceptions import ApplicationError

    if not email:
        _fail("--email is required for create-admin.")
    if not password:
        password = click.prompt("Password", hide_input=True, confirmation_prompt=True)

    try:
        contact = asyncio.run(_create_admin(email, name, password, org_id))
    except ApplicationError as e:
        logger.error("Admin creation failed", extra={"error": e.message})
        _fail(e.message)

    click.echo(click.style(f"Created admin {contact.email} (id: {contact.id})", fg="green"))


def show_info(logger) -> None:
    """Display application information."""
    from portal.backend.core.config import get_app_config

    try:
        application = get_app_config().application
    except Exception as e:
        logger.error("Failed to load application configuration", extra={"error": str(e)})
        _fail("Could not load application.yaml configuration.")

    click.echo(application.name)
    click.echo("=" * 40)
    click.echo(f"Version: {application.version}")
    click.echo(f"Description: {application.description}")
    click.echo(f"Environment: {application.environment}")
    click.echo()
    click.echo("Services (--service):")
    click.echo("  server         FastAPI server (uvicorn)")
    click.echo("  worker         Background job worker (taskiq)")
    click.echo("  scheduler      Periodic job scheduler (taskiq)")
    click.echo("  health         Check configuration and imports")
    click.echo("  config         Display validated configuration")
    click.echo("  test           Run test suite")
    click.echo("  migrate        Database migrations (alembic)")
    click.echo("  create-admin   Create a platform admin")
    click.echo("  info           Show this information")
    click.echo()
    click.echo("Lifecycle actions (--action, for long-running services):")
    click.echo("  start          Start the service (default)")
    click.echo("  stop           Stop a running service")
    click.echo("  restart        Stop then start")
    click.echo("  status         Check if running")
    logger.debug("Info displayed")


if __name__ == "__main__":
    main()
