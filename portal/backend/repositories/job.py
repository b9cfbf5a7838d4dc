"""
Background Job Repository.

Data access for background_jobs rows.
"""

from datetime import datetime

from sqlalchemy import case, delete, func, or_, select, update

from portal.backend.models.job import (
    JOB_FAILED,
    JOB_FINISHED_STATUSES,
    JOB_PENDING,
    JOB_RUNNING,
    BackgroundJob,
)
from portal.backend.repositories.base import BaseRepository


def _runnable(now: datetime):
    return or_(BackgroundJob.run_after.is_(None), BackgroundJob.run_after <= now)


class BackgroundJobRepository(BaseRepository[BackgroundJob]):
    """Repository for BackgroundJob model."""

    model = BackgroundJob
    label = "Job"

    async def list_for_org(
        self,
        org_id: str,
        status: str | None = None,
        type: str | None = None,
        limit: int = 50,
    ) -> list[BackgroundJob]:
        conditions = [BackgroundJob.org_id == org_id]
        if status:
            conditions.append(BackgroundJob.status == status)
        if type:
            conditions.append(BackgroundJob.type == type)
        return await self.find(*conditions, order_by=BackgroundJob.created_at.desc(), limit=limit)

    async def list_stale_pending(
        self, older_than: datetime, limit: int, now: datetime | None = None,
    ) -> list[BackgroundJob]:
        """
        Pending jobs created before ``older_than`` and runnable at ``now``.

        Covers lost dispatches and retries whose backoff has elapsed.
        """
        now = now or older_than
        priority_rank = case(
            (BackgroundJob.priority == "high", 0),
            (BackgroundJob.priority == "normal", 1),
            else_=2,
        )
        return await self.find(
            BackgroundJob.status == JOB_PENDING,
            BackgroundJob.created_at <= older_than,
            _runnable(now),
            order_by=[priority_rank, BackgroundJob.created_at.asc()],
            limit=limit,
        )

    async def count_by(self, column, org_id: str | None) -> dict[str, int]:
        """Group counts by a column (status or priority)."""
        query = select(column, func.count()).group_by(column)
        if org_id is not None:
            query = query.where(BackgroundJob.org_id == org_id)
        result = await self.session.execute(query)
        return {key: count for key, count in result.all()}

    async def delete_finished_before(self, cutoff: datetime) -> int:
        """Delete completed, failed, or cancelled jobs older than cutoff."""
        result = await self.session.execute(
            delete(BackgroundJob).where(
                BackgroundJob.status.in_(JOB_FINISHED_STATUSES),
                BackgroundJob.created_at < cutoff,
            )
        )
        return result.rowcount or 0

    async def claim(self, job_id: str, started_at: datetime) -> bool:
        """
        Move a pending job to running.

        Conditional on the current status so two workers receiving the
        same id cannot both run it. A retry still inside its backoff
        is not claimed. Returns False when the job was not claimed.
        """
        result = await self.session.execute(
            update(BackgroundJob)
            .where(BackgroundJob.id == job_id, BackgroundJob.status == JOB_PENDING, _runnable(started_at))
            .values(status=JOB_RUNNING, started_at=started_at)
        )
        return (result.rowcount or 0) == 1

    async def requeue_failed(self, job_id: str, retry_count: int, run_after: datetime | None = None) -> bool:
        """Put a failed job back to pending for another attempt, not before ``run_after``."""
        result = await self.session.execute(
            update(BackgroundJob)
            .where(BackgroundJob.id == job_id, BackgroundJob.status == JOB_FAILED)
            .values(
                status=JOB_PENDING,
                retry_count=retry_count,
                run_after=run_after,
                started_at=None,
                completed_at=None,
            )
        )
        return (result.rowcount or 0) == 1
