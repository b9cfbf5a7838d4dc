"""
Background Job Schemas.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class JobCreate(BaseModel):
    type: str = Field(..., min_length=1, max_length=50, examples=["crawl_sitemap"])
    params: dict[str, Any] = Field(default_factory=dict)
    priority: Literal["high", "normal", "low"] | None = None


class JobResponse(BaseModel):
    id: str
    org_id: str | None
    type: str
    status: str
    priority: str
    params: dict[str, Any]
    result: dict[str, Any] | None
    error: str | None
    retry_count: int
    max_retries: int
    retry_of: str | None
    created_by: str | None
    run_after: datetime | None = None
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class JobStats(BaseModel):
    by_status: dict[str, int]
    by_priority: dict[str, int]
    total: int
