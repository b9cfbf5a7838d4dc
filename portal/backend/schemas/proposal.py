"""
Proposal Schemas.

Pydantic schemas for proposals, their lifecycle actions and analytics.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class LineItem(BaseModel):
    """One priced line of a proposal."""

    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)


class ProposalCreate(BaseModel):
    """title and contact_id are validated by the service (400 when blank)."""

    title: str | None = Field(default=None, max_length=255)
    contact_id: str | None = None
    content: str | None = None
    line_items: list[LineItem] = Field(default_factory=list)
    valid_until: datetime | None = None


class ProposalUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    content: str | None = None
    line_items: list[LineItem] | None = None
    valid_until: datetime | None = None


class ProposalResponse(BaseModel):
    id: str
    contact_id: str
    created_by: str | None
    title: str
    content: str | None
    line_items: list[dict]
    total: Decimal
    status: str
    valid_until: datetime | None
    sent_at: datetime | None
    first_viewed_at: datetime | None
    last_viewed_at: datetime | None
    view_count: int
    accepted_at: datetime | None
    declined_at: datetime | None
    decline_reason: str | None
    signed_at: datetime | None
    signer_name: str | None
    signer_email: str | None
    deposit_amount: Decimal | None
    deposit_paid_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProposalListResponse(BaseModel):
    id: str
    contact_id: str
    title: str
    total: Decimal
    status: str
    sent_at: datetime | None
    view_count: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProposalAccept(BaseModel):
    signature_data: str | None = None
    create_project: bool = True


class ProposalDecline(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class ProposalSign(BaseModel):
    signature_data: str | None = None
    signer_name: str | None = Field(default=None, max_length=255)
    signer_email: str | None = Field(default=None, max_length=320)


class ProposalAcceptResponse(BaseModel):
    proposal: ProposalResponse
    project_id: str | None = None


class ProposalAnalytics(BaseModel):
    view_count: int
    time_to_first_view_ms: int | None
    time_to_accept_ms: int | None


class ProposalAiEdit(BaseModel):
    instructions: str | None = Field(default=None, max_length=4000)


class DepositPayment(BaseModel):
    source_id: str | None = None
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)


class DepositPaymentResult(BaseModel):
    success: bool = True
    proposal_id: str
    payment_id: str
    amount: Decimal
    deposit_paid_at: datetime | None
    recorded: bool = Field(
        default=True,
        description="False when the charge succeeded but the proposal update did not persist",
    )


class TrackViewResponse(BaseModel):
    view_count: int
    status: str
