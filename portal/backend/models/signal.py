"""
Signal Models.

Per-tenant Echo assistant configuration and its chat history.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.models.base import Base, OrgScopedMixin, TimestampMixin, UUIDMixin


class SignalConfig(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """Echo assistant settings. At most one row per organization."""

    __tablename__ = "signal_config"
    __table_args__ = (UniqueConstraint("org_id", name="uq_signal_config_org"),)

    enabled: Mapped[bool] = mapped_column(default=True, nullable=False)
    assistant_name: Mapped[str] = mapped_column(String(100), default="Echo", nullable=False)
    tone: Mapped[str] = mapped_column(String(50), default="friendly", nullable=False)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    assistant_contact_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True,
    )


class SignalConversation(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """A chat session between a contact and Echo."""

    __tablename__ = "signal_conversations"

    contact_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rating: Mapped[int | None] = mapped_column(nullable=True)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class SignalMessage(UUIDMixin, TimestampMixin, Base):
    """One turn in a conversation (role is user or assistant)."""

    __tablename__ = "signal_messages"

    conversation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("signal_conversations.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
