"""
Invoice Model.

Invoices with magic-link payment and optional recurrence.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.models.base import Base, OrgScopedMixin, TimestampMixin, UUIDMixin

INVOICE_STATUSES = ("draft", "sent", "overdue", "paid", "cancelled")
UNPAID_STATUSES = ("sent", "overdue")
RECURRING_INTERVALS = ("weekly", "bi-weekly", "monthly", "quarterly", "semi-annual", "annual")


class Invoice(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """
    Invoice.

    ``payment_token`` is unique across all tenants; it is the only
    credential a client needs to pay through the public link.
    """

    __tablename__ = "invoices"

    contact_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    project_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True,
    )
    parent_invoice_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True,
    )

    number_seq: Mapped[int] = mapped_column(nullable=False, unique=True)
    invoice_number: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    total: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False, index=True)
    due_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    payment_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    payment_token_expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    square_payment_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)

    reminder_count: Mapped[int] = mapped_column(default=0, nullable=False)
    last_reminder_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_reminder_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    is_recurring: Mapped[bool] = mapped_column(default=False, nullable=False)
    recurring_interval: Mapped[str | None] = mapped_column(String(20), nullable=True)
    recurring_day_of_month: Mapped[int | None] = mapped_column(nullable=True)
    next_invoice_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
