"""
Message Schemas.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MessageCreate(BaseModel):
    """recipient_id and content are required; subject only for new threads."""

    recipient_id: str | None = None
    content: str | None = Field(default=None, max_length=20000)
    subject: str | None = Field(default=None, max_length=500)
    parent_id: str | None = None
    project_id: str | None = None


class MessageResponse(BaseModel):
    id: str
    project_id: str | None
    sender_id: str
    recipient_id: str
    parent_id: str | None
    subject: str | None
    content: str
    thread_type: str
    is_read: bool
    read_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ThreadResponse(BaseModel):
    root: MessageResponse
    replies: list[MessageResponse]


class UnreadCount(BaseModel):
    unread: int
