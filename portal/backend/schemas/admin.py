"""
Admin Schemas.

Pydantic schemas for organizations, memberships and client invites.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from portal.backend.schemas.auth import ContactResponse

MemberRole = Literal["owner", "admin", "member"]
AccessLevel = Literal["organization", "project"]


class OrganizationCreate(BaseModel):
    """name and slug are checked by the service so format errors map to 400."""

    name: str | None = Field(default=None, max_length=255)
    slug: str | None = Field(default=None, max_length=100)
    domain: str | None = Field(default=None, max_length=255)
    plan: str = Field(default="standard", max_length=50)
    features: dict[str, bool] = Field(default_factory=dict)


class OrganizationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    domain: str | None = Field(default=None, max_length=255)
    plan: str | None = Field(default=None, max_length=50)
    features: dict[str, bool] | None = None
    is_active: bool | None = None


class OrganizationResponse(BaseModel):
    id: str
    name: str
    slug: str
    domain: str | None
    plan: str
    features: dict[str, bool]
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MemberCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    name: str | None = Field(default=None, max_length=255)
    role: MemberRole = "member"
    access_level: AccessLevel = "organization"


class MemberUpdate(BaseModel):
    role: MemberRole | None = None
    access_level: AccessLevel | None = None


class MemberResponse(BaseModel):
    id: str
    org_id: str
    contact_id: str
    role: str
    access_level: str
    email: str | None = None
    name: str | None = None
    invite_pending: bool = False
    created_at: datetime


class ClientInvite(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    name: str = Field(..., min_length=1, max_length=255)
    company: str | None = Field(default=None, max_length=255)


class InviteResponse(BaseModel):
    """The setup link is returned so the admin can share it manually."""

    contact: ContactResponse
    invite_token: str
    invite_expires_at: datetime
    setup_url: str
