"""
Job Dispatch.

Hands a job id to the taskiq broker without waiting for a result.
"""

from portal.backend.core.config import get_app_config
from portal.backend.core.logging import get_logger

logger = get_logger(__name__)


async def dispatch_job(job_id: str) -> bool:
    """
    Send ``run_background_job(job_id)`` to the worker queue.

    Returns:
        True when the message reached the broker. False when dispatch is
        disabled or failed; the row then stays pending and the
        dispatch_pending_jobs poller picks it up.
    """
    if not get_app_config().features.jobs_dispatch_enabled:
        logger.debug("Job dispatch disabled", extra={"job_id": job_id})
        return False

    # Imported here: the task module pulls in every job handler
    from portal.backend.tasks.jobs import get_job_task

    try:
        await get_job_task().kiq(job_id)
    except Exception as e:
        logger.warning(
            "Job dispatch failed, left pending",
            extra={"job_id": job_id, "error": str(e), "error_type": type(e).__name__},
        )
        return False

    logger.debug("Job dispatched", extra={"job_id": job_id})
    return True
