"""
Email Schemas.

Pydantic schemas for campaigns, templates, lists, subscribers and one-off sends.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    subject: str | None = Field(default=None, max_length=500)
    content: str | None = None
    template_id: str | None = None
    list_id: str | None = None


class CampaignUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    subject: str | None = Field(default=None, max_length=500)
    content: str | None = None
    template_id: str | None = None
    list_id: str | None = None


class CampaignResponse(BaseModel):
    id: str
    name: str
    subject: str | None
    content: str | None
    template_id: str | None
    list_id: str | None
    status: str
    scheduled_at: datetime | None
    sent_at: datetime | None
    sent_count: int
    open_count: int
    click_count: int
    bounce_count: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CampaignSchedule(BaseModel):
    scheduled_at: datetime | None = None


class CampaignStats(BaseModel):
    sent_count: int
    open_count: int
    click_count: int
    bounce_count: int
    open_rate: float
    click_rate: float
    bounce_rate: float


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    subject: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)
    category: str | None = Field(default=None, max_length=50)


class TemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    subject: str | None = Field(default=None, min_length=1, max_length=500)
    content: str | None = Field(default=None, min_length=1)
    category: str | None = Field(default=None, max_length=50)


class TemplateResponse(BaseModel):
    id: str
    name: str
    subject: str
    content: str
    category: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ListCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class ListResponse(BaseModel):
    id: str
    name: str
    description: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubscriberCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    name: str | None = Field(default=None, max_length=255)


class SubscriberResponse(BaseModel):
    id: str
    list_id: str
    email: str
    name: str | None
    status: str
    subscribed_at: datetime
    unsubscribed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class SendEmailRequest(BaseModel):
    """``to`` plus either ``content`` or ``template_id``; checked by the service."""

    to: str | None = None
    subject: str | None = Field(default=None, max_length=500)
    content: str | None = None
    template_id: str | None = None
    contact_id: str | None = None


class SendEmailResponse(BaseModel):
    tracking_id: str
    provider_id: str | None
