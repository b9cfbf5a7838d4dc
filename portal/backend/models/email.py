"""
Email Models.

Campaigns, templates, lists, subscribers, and per-message tracking.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.core.utils import utc_now
from portal.backend.models.base import Base, OrgScopedMixin, TimestampMixin, UUIDMixin

CAMPAIGN_STATUSES = ("draft", "scheduled", "sending", "sent", "paused", "failed")
# A campaign can only be sent from these statuses
CAMPAIGN_SENDABLE_STATUSES = ("draft", "scheduled")


class EmailTemplate(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """Reusable subject and HTML body."""

    __tablename__ = "email_templates"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)


class EmailList(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """Named audience of subscribers."""

    __tablename__ = "email_lists"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class EmailSubscriber(UUIDMixin, TimestampMixin, Base):
    """Email address on a list. Addresses are stored lowercased."""

    __tablename__ = "email_subscribers"
    __table_args__ = (UniqueConstraint("list_id", "email", name="uq_list_subscriber"),)

    list_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("email_lists.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="subscribed", nullable=False)
    subscribed_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    unsubscribed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class EmailCampaign(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """Bulk send of one message to one list."""

    __tablename__ = "email_campaigns"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    template_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True,
    )
    list_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("email_lists.id", ondelete="SET NULL"), nullable=True,
    )
    created_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True,
    )
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False, index=True)
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    sent_count: Mapped[int] = mapped_column(default=0, nullable=False)
    open_count: Mapped[int] = mapped_column(default=0, nullable=False)
    click_count: Mapped[int] = mapped_column(default=0, nullable=False)
    bounce_count: Mapped[int] = mapped_column(default=0, nullable=False)


class EmailTracking(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """One delivered email, with open/click stamps."""

    __tablename__ = "email_tracking"

    contact_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    campaign_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("email_campaigns.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    to_email: Mapped[str] = mapped_column(String(320), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    provider_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="sent", nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    opened_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    clicked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    open_count: Mapped[int] = mapped_column(default=0, nullable=False)
    click_count: Mapped[int] = mapped_column(default=0, nullable=False)
