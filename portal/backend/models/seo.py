"""
SEO Models.

Sites, crawled pages, tracked keywords, and recommendations.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.models.base import Base, OrgScopedMixin, TimestampMixin, UUIDMixin

SITE_STATUSES = ("pending_setup", "active", "paused", "error")
RECOMMENDATION_STATUSES = ("pending", "applied", "dismissed")
# Recommendation types that rewrite a page field when applied
APPLICABLE_RECOMMENDATION_FIELDS = {
    "title": "title",
    "meta_description": "meta_description",
}


class SeoSite(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """A website managed for a tenant."""

    __tablename__ = "seo_sites"
    __table_args__ = (UniqueConstraint("org_id", "domain", name="uq_seo_site_domain"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending_setup", nullable=False)
    settings: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    last_crawled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class SeoPage(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """A page discovered through the sitemap."""

    __tablename__ = "seo_pages"
    __table_args__ = (UniqueConstraint("site_id", "url", name="uq_seo_page_url"),)

    site_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("seo_sites.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    path: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    page_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    h1: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status_code: Mapped[int | None] = mapped_column(nullable=True)
    lastmod: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_crawled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class SeoKeyword(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """A search term and its ranking for a site."""

    __tablename__ = "seo_keywords"
    __table_args__ = (UniqueConstraint("site_id", "keyword", name="uq_seo_keyword"),)

    site_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("seo_sites.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    keyword: Mapped[str] = mapped_column(String(255), nullable=False)
    is_tracked: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_local: Mapped[bool] = mapped_column(default=False, nullable=False)
    target_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    search_volume: Mapped[int | None] = mapped_column(nullable=True)
    position: Mapped[float | None] = mapped_column(nullable=True)
    previous_position: Mapped[float | None] = mapped_column(nullable=True)
    clicks: Mapped[int] = mapped_column(default=0, nullable=False)
    impressions: Mapped[int] = mapped_column(default=0, nullable=False)


class SeoRecommendation(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """Suggested change to a page."""

    __tablename__ = "seo_recommendations"

    site_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("seo_sites.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    page_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("seo_pages.id", ondelete="CASCADE"), nullable=True,
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str] = mapped_column(String(10), default="medium", nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    suggested_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
