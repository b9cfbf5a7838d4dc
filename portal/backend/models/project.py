"""
Project Models.

Client projects and their checklists.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.models.base import Base, OrgScopedMixin, TimestampMixin, UUIDMixin

PROJECT_STATUSES = ("planning", "active", "on_hold", "completed", "cancelled")


class Project(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """Client engagement, often created from an accepted proposal."""

    __tablename__ = "projects"

    contact_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    proposal_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("proposals.id", ondelete="SET NULL"), nullable=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    project_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="planning", nullable=False, index=True)
    budget: Mapped[Decimal | None] = mapped_column(nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class ProjectChecklistItem(UUIDMixin, TimestampMixin, Base):
    """One line of a project checklist."""

    __tablename__ = "project_checklist_items"

    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    sort_order: Mapped[int] = mapped_column(default=0, nullable=False)
    is_completed: Mapped[bool] = mapped_column(default=False, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True,
    )
