"""
CRM Models.

Notes, call logs, follow-ups, tasks, and in-app notifications.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.core.utils import utc_now
from portal.backend.models.base import Base, OrgScopedMixin, TimestampMixin, UUIDMixin

FOLLOW_UP_STATUSES = ("pending", "completed", "cancelled")
TASK_STATUSES = ("todo", "in_progress", "done")


class CrmNote(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """Free-text note attached to a contact."""

    __tablename__ = "crm_notes"

    contact_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    author_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)


class CallLog(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """A phone call with a contact."""

    __tablename__ = "call_logs"

    contact_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    caller_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True,
    )
    direction: Mapped[str] = mapped_column(String(10), default="outbound", nullable=False)
    duration_seconds: Mapped[int] = mapped_column(default=0, nullable=False)
    outcome: Mapped[str | None] = mapped_column(String(50), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    recording_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    called_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)


class CallFollowUp(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """Action item created from a call, owned by one rep."""

    __tablename__ = "call_follow_ups"

    call_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("call_logs.id", ondelete="CASCADE"), nullable=True,
    )
    contact_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    assigned_to: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class Task(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """Work item, optionally tied to a project or contact."""

    __tablename__ = "tasks"

    project_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    contact_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True,
    )
    assigned_to: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="todo", nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(10), default="normal", nullable=False)
    due_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class Notification(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """In-app notification for one contact."""

    __tablename__ = "notifications"

    contact_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_read: Mapped[bool] = mapped_column(default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
