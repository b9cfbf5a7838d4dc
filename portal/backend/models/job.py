"""
Background Job Model.

A row per unit of deferred work. The row is the source of truth for
status; the taskiq broker only carries the job id.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.models.base import Base, TimestampMixin, UUIDMixin

JOB_PENDING = "pending"
JOB_RUNNING = "running"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"
JOB_CANCELLED = "cancelled"

JOB_STATUSES = (JOB_PENDING, JOB_RUNNING, JOB_COMPLETED, JOB_FAILED, JOB_CANCELLED)
JOB_FINISHED_STATUSES = (JOB_COMPLETED, JOB_FAILED, JOB_CANCELLED)
JOB_RETRYABLE_STATUSES = (JOB_FAILED, JOB_CANCELLED)
JOB_PRIORITIES = ("high", "normal", "low")


class BackgroundJob(UUIDMixin, TimestampMixin, Base):
    """Deferred unit of work with a status lifecycle."""

    __tablename__ = "background_jobs"

    org_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default=JOB_PENDING, nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(10), default="normal", nullable=False)
    params: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    result: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    retry_count: Mapped[int] = mapped_column(default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(default=3, nullable=False)
    retry_of: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("background_jobs.id", ondelete="SET NULL"), nullable=True,
    )
    created_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True,
    )

    # earliest time a retry may be dispatched; None means immediately
    run_after: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<BackgroundJob(id={self.id}, type={self.type!r}, status={self.status!r})>"
