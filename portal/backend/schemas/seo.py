"""
SEO Schemas.

Pydantic schemas for sites, pages, keywords and recommendations.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class SiteCreate(BaseModel):
    """domain is normalized by the service; name defaults to the domain."""

    domain: str | None = Field(default=None, max_length=255)
    name: str | None = Field(default=None, max_length=255)
    settings: dict = Field(default_factory=dict)


class SiteUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    status: Literal["pending_setup", "active", "paused", "error"] | None = None
    settings: dict | None = None


class SiteResponse(BaseModel):
    id: str
    name: str
    domain: str
    status: str
    settings: dict
    last_crawled_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PageUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=500)
    meta_description: str | None = None
    h1: str | None = Field(default=None, max_length=500)
    page_type: str | None = Field(default=None, max_length=50)


class PageResponse(BaseModel):
    id: str
    site_id: str
    url: str
    path: str | None
    page_type: str | None
    title: str | None
    meta_description: str | None
    h1: str | None
    status_code: int | None
    lastmod: datetime | None
    last_crawled_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class KeywordCreate(BaseModel):
    site_id: str = Field(..., min_length=1)
    keyword: str = Field(..., min_length=1, max_length=255)
    is_tracked: bool = True
    is_local: bool = False
    target_url: str | None = Field(default=None, max_length=1000)


class KeywordResponse(BaseModel):
    id: str
    site_id: str
    keyword: str
    is_tracked: bool
    is_local: bool
    target_url: str | None
    search_volume: int | None
    position: float | None
    previous_position: float | None
    clicks: int
    impressions: int

    model_config = ConfigDict(from_attributes=True)


class RecommendationUpdate(BaseModel):
    status: Literal["pending", "applied", "dismissed"] | None = None
    priority: Literal["low", "medium", "high"] | None = None
    suggested_value: str | None = None


class RecommendationResponse(BaseModel):
    id: str
    site_id: str
    page_id: str | None
    type: str
    priority: str
    title: str
    description: str | None
    current_value: str | None
    suggested_value: str | None
    status: str
    applied_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
