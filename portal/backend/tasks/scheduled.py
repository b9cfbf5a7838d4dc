"""
Scheduled Background Tasks.

Periodic maintenance of the job table and time-driven business tasks.
These are registered with the broker and include schedule metadata
that the TaskiqScheduler reads via LabelScheduleSource.

Schedule Format:
    schedule=[{"cron": "* * * * *", "args": [...], "kwargs": {...}}]

Cron Format:
    ┌───────────── minute (0-59)
    │ ┌───────────── hour (0-23)
    │ │ ┌───────────── day of month (1-31)
    │ │ │ ┌───────────── month (1-12)
    │ │ │ │ ┌───────────── day of week (0-6, Sun=0)
    │ │ │ │ │
    * * * * *

The functions are plain coroutines and can be called directly in tests.
"""

from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.backend.core.config import get_app_config
from portal.backend.core.database import session_scope
from portal.backend.core.logging import get_logger, log_with_source
from portal.backend.core.utils import utc_now
from portal.backend.repositories.job import BackgroundJobRepository
from portal.backend.services.email import EmailService
from portal.backend.services.invoice import InvoiceService
from portal.backend.tasks.dispatch import dispatch_job

logger = get_logger(__name__)


# =============================================================================
# Scheduled Task Functions
# =============================================================================


async def dispatch_pending_jobs(
    batch_size: int | None = None,
    min_age_seconds: int | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict[str, Any]:
    """
    Re-dispatch jobs left pending, e.g. because the broker was down at enqueue,
    and retries whose backoff has elapsed.

    Only jobs older than min_age_seconds are picked so freshly enqueued
    jobs are not sent twice. High priority goes first.
    """
    jobs_config = get_app_config().jobs
    batch_size = batch_size or jobs_config.poll_batch_size
    min_age_seconds = min_age_seconds if min_age_seconds is not None else jobs_config.poll_min_age_seconds

    now = utc_now()
    async with session_scope(session_factory) as session:
        stale = await BackgroundJobRepository(session).list_stale_pending(
            now - timedelta(seconds=min_age_seconds), batch_size, now=now,
        )
        job_ids = [job.id for job in stale]

    dispatched = 0
    for job_id in job_ids:
        if await dispatch_job(job_id):
            dispatched += 1

    result = {"found": len(job_ids), "dispatched": dispatched}
    if job_ids:
        log_with_source(logger, "tasks", "info", "Pending jobs dispatched", **result)
    return result


async def cleanup_finished_jobs(
    older_than_days: int | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict[str, Any]:
    """Delete completed, failed and cancelled jobs past the retention period."""
    days = older_than_days or get_app_config().jobs.cleanup_after_days
    async with session_scope(session_factory) as session:
        deleted = await BackgroundJobRepository(session).delete_finished_before(
            utc_now() - timedelta(days=days),
        )
    result = {"deleted": deleted, "older_than_days": days}
    log_with_source(logger, "tasks", "info", "Finished jobs cleaned up", **result)
    return result


async def generate_recurring_invoices(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict[str, Any]:
    """Issue the next invoice of every due recurring invoice."""
    async with session_scope(session_factory) as session:
        invoices = await InvoiceService(session).generate_recurring()
        invoice_ids = [invoice.id for invoice in invoices]
    result = {"generated": len(invoice_ids), "invoice_ids": invoice_ids}
    log_with_source(logger, "tasks", "info", "Recurring invoices generated", generated=len(invoice_ids))
    return result


async def send_due_invoice_reminders(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict[str, Any]:
    """Mark overdue invoices and send the payment reminders that are due."""
    async with session_scope(session_factory) as session:
        result = await InvoiceService(session).send_due_reminders()
    log_with_source(logger, "tasks", "info", "Invoice reminders sent", **result)
    return result


async def start_scheduled_campaigns(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict[str, Any]:
    """Start sending campaigns whose scheduled time has passed."""
    async with session_scope(session_factory) as session:
        jobs = await EmailService(session).start_due_campaigns()
        job_ids = [job.id for job in jobs]
    if job_ids:
        log_with_source(logger, "tasks", "info", "Scheduled campaigns started", count=len(job_ids))
    return {"started": len(job_ids), "job_ids": job_ids}


# =============================================================================
# Schedule Configuration
# =============================================================================

SCHEDULED_TASKS = {
    "dispatch_pending_jobs": {
        "function": dispatch_pending_jobs,
        "schedule": [{"cron": "* * * * *"}],
        "description": "Re-dispatch jobs stuck in pending every minute",
    },
    "start_scheduled_campaigns": {
        "function": start_scheduled_campaigns,
        "schedule": [{"cron": "* * * * *"}],
        "description": "Start due scheduled email campaigns every minute",
    },
    "cleanup_finished_jobs": {
        "function": cleanup_finished_jobs,
        "schedule": [{"cron": "30 3 * * *"}],
        "description": "Delete old finished jobs daily at 3:30 AM UTC",
    },
    "generate_recurring_invoices": {
        "function": generate_recurring_invoices,
        "schedule": [{"cron": "0 6 * * *"}],
        "description": "Generate due recurring invoices daily at 6:00 AM UTC",
    },
    "send_due_invoice_reminders": {
        "function": send_due_invoice_reminders,
        "schedule": [{"cron": "0 14 * * *"}],
        "description": "Mark overdue invoices and send due reminders daily at 2:00 PM UTC",
    },
}


def register_scheduled_tasks() -> dict[str, Any]:
    """
    Register scheduled task functions with the Taskiq broker.

    Schedules are attached only when features.jobs_scheduler_enabled is
    on; otherwise the tasks exist for the worker but the scheduler has
    nothing to send.

    Returns:
        Dict mapping task names to registered task objects
    """
    from portal.backend.tasks.broker import get_broker

    broker = get_broker()
    scheduling = get_app_config().features.jobs_scheduler_enabled
    registered = {}

    for task_name, config in SCHEDULED_TASKS.items():
        task_kwargs: dict[str, Any] = {"task_name": task_name, "retry_on_error": False}
        if scheduling:
            task_kwargs["schedule"] = config["schedule"]
        registered[task_name] = broker.task(**task_kwargs)(config["function"])

    logger.info(
        "Scheduled tasks registered",
        extra={
            "task_count": len(registered),
            "tasks": list(registered.keys()),
            "scheduling": scheduling,
        },
    )

    return registered
