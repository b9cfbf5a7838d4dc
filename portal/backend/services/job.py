"""
Background Job Service.

Creates, lists, cancels and retries background_jobs rows. Enqueueing
always writes the row first; the broker only ever carries the job id.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.config import get_app_config
from portal.backend.core.exceptions import ConflictError, ValidationError
from portal.backend.core.utils import utc_now
from portal.backend.models.job import (
    JOB_CANCELLED,
    JOB_PENDING,
    JOB_PRIORITIES,
    JOB_RETRYABLE_STATUSES,
    JOB_STATUSES,
    BackgroundJob,
)
from portal.backend.repositories.job import BackgroundJobRepository
from portal.backend.schemas.job import JobCreate
from portal.backend.services.base import BaseService
from portal.backend.tasks.dispatch import dispatch_job


def registered_job_types() -> set[str]:
    """Every job type listed under a named queue in jobs.yaml."""
    queues = get_app_config().jobs.queues
    return {job_type for queue in queues.values() for job_type in queue.types}


def default_priority(job_type: str) -> str:
    """Priority of the named queue that owns ``job_type`` (normal if none)."""
    for queue in get_app_config().jobs.queues.values():
        if job_type in queue.types:
            return queue.priority
    return "normal"


class JobService(BaseService):
    """Service for background job rows."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = BackgroundJobRepository(session)

    async def enqueue(
        self,
        job_type: str,
        params: dict[str, Any],
        org_id: str | None,
        created_by: str | None = None,
        priority: str | None = None,
        retry_of: str | None = None,
    ) -> BackgroundJob:
        """
        Insert a pending job and hand its id to the broker.

        The row is committed before dispatch so a worker can load it.
        A failed dispatch leaves the row pending for dispatch_pending_jobs.
        """
        job = await self._execute_db_operation(
            "enqueue_job",
            self.repo.create(
                org_id=org_id,
                type=job_type,
                status=JOB_PENDING,
                priority=priority or default_priority(job_type),
                params=params,
                max_retries=get_app_config().jobs.max_retries,
                retry_of=retry_of,
                created_by=created_by,
            ),
        )
        await self.session.commit()

        self._log_operation("Job enqueued", job_id=job.id, job_type=job_type, org_id=org_id)
        await dispatch_job(job.id)
        return job

    async def create_job(self, org_id: str, created_by: str, data: JobCreate) -> BackgroundJob:
        """Enqueue a job requested through the API. The type must be registered."""
        if data.type not in registered_job_types():
            raise ValidationError(
                f"Unknown job type: {data.type}",
                details={"type": data.type, "allowed": sorted(registered_job_types())},
            )
        return await self.enqueue(
            data.type, data.params, org_id=org_id, created_by=created_by, priority=data.priority,
        )

    async def get_job(self, org_id: str, job_id: str) -> BackgroundJob:
        return await self.repo.get_in_org(job_id, org_id)

    async def list_jobs(
        self,
        org_id: str,
        status: str | None = None,
        job_type: str | None = None,
        limit: int = 50,
    ) -> list[BackgroundJob]:
        return await self.repo.list_for_org(org_id, status=status, type=job_type, limit=limit)

    async def cancel_job(self, org_id: str, job_id: str) -> BackgroundJob:
        """
        Cancel a job that has not started.

        Raises:
            ConflictError: Job is not pending
        """
        job = await self.repo.get_in_org(job_id, org_id)
        if job.status != JOB_PENDING:
            raise ConflictError(f"Only pending jobs can be cancelled (job is {job.status})")

        self._log_operation("Cancelling job", job_id=job_id)
        return await self.repo.apply(job, status=JOB_CANCELLED, completed_at=utc_now())

    async def retry_job(self, org_id: str, job_id: str, created_by: str) -> BackgroundJob:
        """
        Re-run a failed or cancelled job as a new row pointing at the original.

        Raises:
            ConflictError: Job is neither failed nor cancelled
        """
        job = await self.repo.get_in_org(job_id, org_id)
        if job.status not in JOB_RETRYABLE_STATUSES:
            raise ConflictError(f"Only failed or cancelled jobs can be retried (job is {job.status})")

        return await self.enqueue(
            job.type,
            dict(job.params or {}),
            org_id=org_id,
            created_by=created_by,
            priority=job.priority,
            retry_of=job.id,
        )

    async def stats(self, org_id: str) -> dict[str, Any]:
        """Counts per status and per priority; every known value is present."""
        by_status = dict.fromkeys(JOB_STATUSES, 0)
        by_status.update(await self.repo.count_by(BackgroundJob.status, org_id))
        by_priority = dict.fromkeys(JOB_PRIORITIES, 0)
        by_priority.update(await self.repo.count_by(BackgroundJob.priority, org_id))
        return {
            "by_status": by_status,
            "by_priority": by_priority,
            "total": sum(by_status.values()),
        }
