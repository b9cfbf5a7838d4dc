"""
Contact Model.

One table for everyone the platform knows about: staff users, clients,
CRM prospects, and the per-tenant Echo assistant.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.models.base import Base, TimestampMixin, UUIDMixin

CONTACT_TYPES = ("prospect", "client", "user", "assistant")
STAFF_ROLES = ("admin", "sales", "manager")
PIPELINE_STAGES = ("new", "contacted", "qualified", "proposal", "negotiation", "won", "lost")


class Contact(UUIDMixin, TimestampMixin, Base):
    """
    A person in the system.

    ``role == "admin"`` marks a platform admin who may act in any
    organization. Contacts without a password_hash cannot log in.
    """

    __tablename__ = "contacts"

    org_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)

    type: Mapped[str] = mapped_column(String(20), default="prospect", nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), default="client", nullable=False)

    pipeline_stage: Mapped[str | None] = mapped_column(String(30), nullable=True, index=True)
    assigned_to: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    lead_source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lead_score: Mapped[int | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    converted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    invite_token: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)
    invite_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def is_platform_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, email={self.email!r}, type={self.type!r})>"
