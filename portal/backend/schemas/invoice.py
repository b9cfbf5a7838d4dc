"""
Invoice Schemas.

Pydantic schemas for invoices, magic-link payment and recurrence.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RecurringInterval = Literal["weekly", "bi-weekly", "monthly", "quarterly", "semi-annual", "annual"]


class InvoiceCreate(BaseModel):
    """contact_id and amount are validated by the service (400 when missing)."""

    contact_id: str | None = None
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    description: str | None = None
    project_id: str | None = None
    due_at: datetime | None = None
    send: bool = True
    is_recurring: bool = False
    recurring_interval: RecurringInterval | None = None
    recurring_day_of_month: int | None = Field(default=None, ge=1, le=31)


class InvoiceUpdate(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    description: str | None = None
    due_at: datetime | None = None
    status: Literal["draft", "sent", "overdue", "cancelled"] | None = None
    is_recurring: bool | None = None
    recurring_interval: RecurringInterval | None = None
    recurring_day_of_month: int | None = Field(default=None, ge=1, le=31)


class InvoiceResponse(BaseModel):
    id: str
    contact_id: str
    project_id: str | None
    parent_invoice_id: str | None
    invoice_number: str
    description: str | None
    amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    status: str
    due_at: datetime | None
    sent_at: datetime | None
    paid_at: datetime | None
    payment_token: str
    payment_token_expires_at: datetime
    square_payment_id: str | None
    payment_method: str | None
    reminder_count: int
    last_reminder_at: datetime | None
    next_reminder_at: datetime | None = None
    is_recurring: bool
    recurring_interval: str | None
    recurring_day_of_month: int | None
    next_invoice_date: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvoiceListResponse(BaseModel):
    id: str
    contact_id: str
    invoice_number: str
    total: Decimal
    status: str
    due_at: datetime | None
    paid_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PublicInvoiceResponse(BaseModel):
    """What the holder of a payment link may see. No token, no internal ids."""

    invoice_number: str
    description: str | None
    amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    status: str
    due_at: datetime | None
    paid_at: datetime | None
    payment_token_expires_at: datetime
    contact_name: str | None = None
    organization_name: str | None = None


class PublicPaymentRequest(BaseModel):
    token: str | None = None
    source_id: str | None = None


class PaymentRequest(BaseModel):
    source_id: str | None = None


class PaymentResult(BaseModel):
    success: bool = True
    invoice_id: str
    invoice_number: str
    payment_id: str
    amount: Decimal
    recorded: bool = Field(
        default=True,
        description="False when the charge succeeded but the invoice update did not persist",
    )


class RecurringRunResult(BaseModel):
    generated: int
    invoice_ids: list[str]
