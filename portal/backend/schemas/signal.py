"""
Signal Schemas.

Echo assistant configuration and chat.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SignalConfigUpdate(BaseModel):
    enabled: bool | None = None
    assistant_name: str | None = Field(default=None, min_length=1, max_length=100)
    tone: str | None = Field(default=None, max_length=50)
    instructions: str | None = Field(default=None, max_length=4000)


class SignalConfigResponse(BaseModel):
    enabled: bool
    assistant_name: str
    tone: str
    instructions: str | None
    assistant_contact_id: str | None

    model_config = ConfigDict(from_attributes=True)


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=8000)
    conversation_id: str | None = None


class SignalMessageResponse(BaseModel):
    id: str
    role: str
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatResponse(BaseModel):
    conversation_id: str
    reply: SignalMessageResponse


class ConversationResponse(BaseModel):
    id: str
    contact_id: str
    title: str | None
    rating: int | None
    last_message_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationDetail(ConversationResponse):
    messages: list[SignalMessageResponse] = Field(default_factory=list)


class ConversationRating(BaseModel):
    rating: int = Field(..., ge=1, le=5)
