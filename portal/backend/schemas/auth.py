"""
Auth Schemas.

Pydantic schemas for login, password management and the current session.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Credentials for POST /auth/login."""

    email: str = Field(..., min_length=3, max_length=320, examples=["owner@example.com"])
    password: str = Field(..., min_length=1, max_length=200)


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=200, description="At least 8 characters")


class SetupPasswordRequest(BaseModel):
    """Invite acceptance: the token from the setup link plus the chosen password."""

    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=200)


class ContactResponse(BaseModel):
    """Contact as seen by the contact themself or by staff."""

    id: str
    org_id: str | None
    email: str
    name: str | None
    company: str | None
    phone: str | None
    type: str
    role: str
    last_login_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrganizationSummary(BaseModel):
    id: str
    name: str
    slug: str
    features: dict[str, bool]

    model_config = ConfigDict(from_attributes=True)


class SessionResponse(BaseModel):
    """Returned by login and setup-password. The token is also set as a cookie."""

    contact: ContactResponse
    token: str


class MeResponse(BaseModel):
    contact: ContactResponse
    organization: OrganizationSummary | None = None
    org_id: str | None = None
    is_admin: bool = False
