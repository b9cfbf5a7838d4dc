"""
Background Job Execution.

``run_background_job`` is the single taskiq task behind every
background_jobs row. The broker message carries only the job id; the
row holds type, params, status, and the outcome.

Lifecycle:
    pending -> running -> completed
                       -> failed -> (retry, after run_after) pending -> running ...
    pending -> cancelled

Each step uses its own session: the claim, the handler, and the outcome
are committed independently, so a failing handler cannot roll back the
record of its own failure.
"""

from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.backend.core.config import get_app_config
from portal.backend.core.database import session_scope
from portal.backend.core.exceptions import ApplicationError
from portal.backend.core.logging import get_logger, log_with_source
from portal.backend.core.utils import utc_now
from portal.backend.models.job import JOB_COMPLETED, JOB_FAILED, BackgroundJob
from portal.backend.repositories.job import BackgroundJobRepository
from portal.backend.tasks.handlers import get_handler

logger = get_logger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


def retry_delay_seconds(retry_count: int) -> int:
    """Exponential backoff: base delay doubled for every earlier retry."""
    return get_app_config().jobs.retry_base_delay_seconds * 2 ** retry_count


def describe_error(exc: BaseException) -> str:
    if isinstance(exc, ApplicationError):
        return f"{exc.code}: {exc.message}"
    return f"{type(exc).__name__}: {exc}"


async def execute_job(job_id: str, session_factory: SessionFactory | None = None) -> dict[str, Any] | None:
    """
    Run one background job by id.

    Returns the handler result, or None when the job was skipped or failed.
    """
    async with session_scope(session_factory) as session:
        repo = BackgroundJobRepository(session)
        if not await repo.claim(job_id, utc_now()):
            log_with_source(logger, "tasks", "info", "Job not pending, skipped", job_id=job_id)
            return None
        job = await repo.get_by_id(job_id)

    log_with_source(
        logger, "tasks", "info", "Job started",
        job_id=job.id, job_type=job.type, attempt=job.retry_count + 1,
    )
    handler = get_handler(job.type)

    try:
        if handler is None:
            raise ApplicationError(f"No handler registered for job type {job.type}", code="UNKNOWN_JOB_TYPE")
        async with session_scope(session_factory) as session:
            result = await handler(session, job)
    except Exception as e:
        await _record_failure(job, e, session_factory)
        return None

    async with session_scope(session_factory) as session:
        await BackgroundJobRepository(session).update(
            job.id, status=JOB_COMPLETED, result=result, error=None, completed_at=utc_now(),
        )
    log_with_source(logger, "tasks", "info", "Job completed", job_id=job.id, job_type=job.type)
    return result


async def _record_failure(
    job: BackgroundJob, exc: Exception, session_factory: SessionFactory | None,
) -> None:
    """
    Mark the job failed and requeue it while attempts remain.

    The retry is not dispatched here; dispatch_pending_jobs picks it up
    once run_after has passed, so no worker slot waits out the backoff.
    """
    error = describe_error(exc)
    async with session_scope(session_factory) as session:
        await BackgroundJobRepository(session).update(
            job.id, status=JOB_FAILED, error=error, completed_at=utc_now(),
        )

    can_retry = job.retry_count < job.max_retries
    log_with_source(
        logger, "tasks", "warning" if can_retry else "error", "Job failed",
        job_id=job.id,
        job_type=job.type,
        error=error,
        retry_count=job.retry_count,
        max_retries=job.max_retries,
    )
    if not can_retry:
        return

    delay = retry_delay_seconds(job.retry_count)
    run_after = utc_now() + timedelta(seconds=delay)
    async with session_scope(session_factory) as session:
        requeued = await BackgroundJobRepository(session).requeue_failed(
            job.id, job.retry_count + 1, run_after=run_after,
        )
    if not requeued:
        # retried or cancelled by someone else in the meantime
        return
    log_with_source(
        logger, "tasks", "info", "Job requeued",
        job_id=job.id, retry_count=job.retry_count + 1, delay_seconds=delay,
    )


async def run_background_job(job_id: str) -> dict[str, Any] | None:
    """Taskiq entry point for every background job."""
    return await execute_job(job_id)


_job_task: Any = None


def get_job_task() -> Any:
    """The registered run_background_job task, registering it on first use."""
    global _job_task
    if _job_task is None:
        from portal.backend.tasks.broker import get_broker

        _job_task = get_broker().task(task_name="run_background_job")(run_background_job)
    return _job_task
