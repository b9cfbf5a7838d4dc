"""
Proposal Model.

Priced offers sent to a contact, with view tracking and e-signature.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.models.base import Base, OrgScopedMixin, TimestampMixin, UUIDMixin

PROPOSAL_STATUSES = ("draft", "sent", "viewed", "signed", "accepted", "declined")
# Statuses from which a proposal can no longer be accepted or declined
PROPOSAL_CLOSED_STATUSES = ("accepted", "declined")


class Proposal(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """
    Proposal with line items.

    ``total`` always equals the sum of quantity * unit_price over
    ``line_items``; services recompute it whenever line items change.
    """

    __tablename__ = "proposals"

    contact_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    created_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    line_items: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    total: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False, index=True)
    valid_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    first_viewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_viewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    view_count: Mapped[int] = mapped_column(default=0, nullable=False)

    accepted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    declined_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    decline_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    signed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    signature_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    signer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    signer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    deposit_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    deposit_paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    deposit_payment_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
