"""
Project Schemas.

Pydantic schemas for projects and their checklists.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ProjectStatus = Literal["planning", "active", "on_hold", "completed", "cancelled"]


class ProjectCreate(BaseModel):
    """Schema for creating a project."""

    name: str = Field(..., min_length=1, max_length=255, examples=["Website redesign"])
    description: str | None = None
    contact_id: str | None = None
    project_type: str | None = Field(default=None, max_length=50)
    status: ProjectStatus = "planning"
    budget: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    start_date: date | None = None
    due_date: date | None = None


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    contact_id: str | None = None
    project_type: str | None = Field(default=None, max_length=50)
    status: ProjectStatus | None = None
    budget: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    start_date: date | None = None
    due_date: date | None = None


class ProjectResponse(BaseModel):
    id: str
    contact_id: str | None
    proposal_id: str | None
    name: str
    description: str | None
    project_type: str | None
    status: str
    budget: Decimal | None
    start_date: date | None
    due_date: date | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChecklistItemCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)


class ChecklistItemUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    is_completed: bool | None = None
    sort_order: int | None = Field(default=None, ge=0)


class ChecklistItemResponse(BaseModel):
    id: str
    project_id: str
    title: str
    sort_order: int
    is_completed: bool
    completed_at: datetime | None
    completed_by: str | None

    model_config = ConfigDict(from_attributes=True)


class ChecklistResponse(BaseModel):
    items: list[ChecklistItemResponse]
    completed: int
    total: int
    progress: int = Field(description="Completed items as a whole percentage")


class ProjectDetailResponse(ProjectResponse):
    """Single project view, with checklist progress."""

    progress: int = 0
    checklist_total: int = 0
    checklist_completed: int = 0
