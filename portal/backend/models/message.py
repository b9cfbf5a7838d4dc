"""
Message Model.

Threaded messages between staff and clients. A thread is a root
message (parent_id is NULL) plus its replies.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.models.base import Base, OrgScopedMixin, TimestampMixin, UUIDMixin

THREAD_TYPES = ("direct", "group", "echo")


class Message(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """A single message."""

    __tablename__ = "messages"

    project_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    sender_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    recipient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    parent_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("messages.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    thread_type: Mapped[str] = mapped_column(String(10), default="direct", nullable=False)
    is_read: Mapped[bool] = mapped_column(default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
