"""
Organization Models.

Tenants and their memberships.
"""

from sqlalchemy import JSON, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.models.base import Base, TimestampMixin, UUIDMixin

MEMBER_ROLES = ("owner", "admin", "member")
ACCESS_LEVELS = ("organization", "project")

# Feature switches every tenant carries; files and messages are on by default
DEFAULT_FEATURES: dict[str, bool] = {
    "analytics": False,
    "blog": False,
    "crm": False,
    "projects": False,
    "proposals": False,
    "billing": False,
    "ecommerce": False,
    "files": True,
    "messages": True,
    "email_manager": False,
    "seo": False,
}


class Organization(UUIDMixin, TimestampMixin, Base):
    """A tenant. Almost every other row carries an org_id pointing here."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    plan: Mapped[str] = mapped_column(String(50), default="standard", nullable=False)
    features: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug!r})>"


class OrganizationMember(UUIDMixin, TimestampMixin, Base):
    """Membership of a contact in an organization."""

    __tablename__ = "organization_members"
    __table_args__ = (UniqueConstraint("org_id", "contact_id", name="uq_org_member"),)

    org_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    contact_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    role: Mapped[str] = mapped_column(String(20), default="member", nullable=False)
    access_level: Mapped[str] = mapped_column(String(20), default="organization", nullable=False)
