"""
CRM Schemas.

Pydantic schemas for prospects, calls, follow-ups, tasks,
notifications, notes and staff users.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from portal.backend.schemas.auth import ContactResponse


class ProspectCreate(BaseModel):
    """Schema for creating a prospect. Email is required."""

    email: str | None = Field(default=None, max_length=320)
    name: str | None = Field(default=None, max_length=255)
    company: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    website: str | None = Field(default=None, max_length=500)
    pipeline_stage: str | None = Field(default="new", max_length=30)
    assigned_to: str | None = None
    lead_source: str | None = Field(default=None, max_length=100)
    lead_score: int | None = Field(default=None, ge=0, le=100)
    notes: str | None = None


class ProspectUpdate(BaseModel):
    """Partial update; only provided fields change."""

    email: str | None = Field(default=None, max_length=320)
    name: str | None = Field(default=None, max_length=255)
    company: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    website: str | None = Field(default=None, max_length=500)
    pipeline_stage: str | None = Field(default=None, max_length=30)
    assigned_to: str | None = None
    lead_source: str | None = Field(default=None, max_length=100)
    lead_score: int | None = Field(default=None, ge=0, le=100)
    notes: str | None = None


class ProspectResponse(BaseModel):
    id: str
    email: str
    name: str | None
    company: str | None
    phone: str | None
    website: str | None
    type: str
    pipeline_stage: str | None
    assigned_to: str | None
    lead_source: str | None
    lead_score: int | None
    notes: str | None
    converted_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProspectConvert(BaseModel):
    """Optional project to open for the converted client."""

    project_name: str | None = Field(default=None, max_length=255)
    project_type: str | None = Field(default=None, max_length=50)


class ConvertResponse(BaseModel):
    contact: ProspectResponse
    project_id: str | None = None


class ActivityItem(BaseModel):
    """One entry of the merged prospect timeline."""

    type: Literal["call", "email", "note"]
    id: str
    date: datetime
    summary: str | None


class CallLogResponse(BaseModel):
    id: str
    contact_id: str
    caller_id: str | None
    direction: str
    duration_seconds: int
    outcome: str | None
    summary: str | None
    recording_url: str | None
    called_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TrackedEmailResponse(BaseModel):
    id: str
    contact_id: str | None
    campaign_id: str | None
    to_email: str
    subject: str | None
    status: str
    sent_at: datetime
    opened_at: datetime | None
    clicked_at: datetime | None
    open_count: int
    click_count: int

    model_config = ConfigDict(from_attributes=True)


class FollowUpUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    notes: str | None = None
    due_at: datetime | None = None
    status: Literal["pending", "completed", "cancelled"] | None = None


class FollowUpResponse(BaseModel):
    id: str
    call_id: str | None
    contact_id: str | None
    assigned_to: str | None
    title: str
    notes: str | None
    due_at: datetime | None
    status: str
    completed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    status: Literal["todo", "in_progress", "done"] | None = None
    priority: Literal["low", "normal", "high"] | None = None
    assigned_to: str | None = None
    due_at: datetime | None = None


class TaskResponse(BaseModel):
    id: str
    project_id: str | None
    contact_id: str | None
    assigned_to: str | None
    title: str
    description: str | None
    status: str
    priority: str
    due_at: datetime | None
    completed_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    body: str | None
    link: str | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NoteCreate(BaseModel):
    """Both fields are checked by the service so blanks are rejected with 400."""

    contact_id: str | None = None
    content: str | None = Field(default=None, max_length=20000)


class NoteResponse(BaseModel):
    id: str
    contact_id: str
    author_id: str | None
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MarkedRead(BaseModel):
    updated: int


StaffUserResponse = ContactResponse
