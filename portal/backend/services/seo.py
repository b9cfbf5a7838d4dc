"""
SEO Service.

Sites, crawled pages, keywords and recommendations. Crawling and AI
analysis run as background jobs; their handler bodies live here.
"""

import json
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import ConflictError, ValidationError
from portal.backend.core.logging import get_logger
from portal.backend.core.utils import utc_now
from portal.backend.integrations.llm import LLMClient
from portal.backend.integrations.sitemap import SitemapClient
from portal.backend.models.job import BackgroundJob
from portal.backend.models.seo import (
    APPLICABLE_RECOMMENDATION_FIELDS,
    SeoKeyword,
    SeoPage,
    SeoRecommendation,
    SeoSite,
)
from portal.backend.repositories.job import BackgroundJobRepository
from portal.backend.repositories.seo import (
    SeoKeywordRepository,
    SeoPageRepository,
    SeoRecommendationRepository,
    SeoSiteRepository,
)
from portal.backend.schemas.seo import (
    KeywordCreate,
    PageUpdate,
    RecommendationUpdate,
    SiteCreate,
    SiteUpdate,
)
from portal.backend.services.base import BaseService
from portal.backend.services.job import JobService

logger = get_logger(__name__)

# Pages sent to the model in one analysis run
ANALYZE_PAGE_LIMIT = 25

ANALYZE_SYSTEM_PROMPT = (
    "You are an SEO specialist. Review the page titles and meta descriptions "
    "you are given. Reply with a JSON array only. Each element has: url, type "
    "(title or meta_description), priority (low, medium or high), title, "
    "description, suggested_value."
)


def normalize_domain(value: str) -> str:
    """Lowercase, without scheme and without trailing slash."""
    domain = value.strip().lower()
    for scheme in ("https://", "http://"):
        if domain.startswith(scheme):
            domain = domain[len(scheme):]
    return domain.rstrip("/")


def parse_recommendations(text: str) -> list[dict[str, Any]]:
    """
    Extract the JSON array from a model reply.

    Code fences and surrounding prose are tolerated; anything that does
    not parse yields an empty list.
    """
    start, end = text.find("["), text.rfind("]")
    if start == -1 or end <= start:
        return []
    try:
        items = json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        logger.warning("Unparseable SEO analysis reply", extra={"length": len(text)})
        return []
    return [item for item in items if isinstance(item, dict)]


class SeoService(BaseService):
    """Service for SEO sites and their content."""

    def __init__(
        self,
        session: AsyncSession,
        llm: LLMClient | None = None,
        sitemap_client_factory=SitemapClient,
    ) -> None:
        super().__init__(session)
        self.sites = SeoSiteRepository(session)
        self.pages = SeoPageRepository(session)
        self.keywords = SeoKeywordRepository(session)
        self.recommendations = SeoRecommendationRepository(session)
        self._llm = llm
        self.sitemap_client_factory = sitemap_client_factory

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            self._llm = LLMClient()
        return self._llm

    # -------------------------------------------------------------------------
    # Sites
    # -------------------------------------------------------------------------

    async def list_sites(self, org_id: str) -> list[SeoSite]:
        return await self.sites.list_for_org(org_id)

    async def get_site(self, org_id: str, site_id: str) -> SeoSite:
        return await self.sites.get_in_org(site_id, org_id)

    async def create_site(self, org_id: str, data: SiteCreate) -> SeoSite:
        """
        Register a site for an org.

        Raises:
            ValidationError: domain missing
            ConflictError: Domain already registered in the org
        """
        self._validate_required(data.model_dump(), ["domain"])
        domain = normalize_domain(data.domain)
        if not domain:
            raise ValidationError("domain is required", details={"field": "domain"})
        if await self.sites.get_by_domain(org_id, domain) is not None:
            raise ConflictError("Site already exists for this domain")

        self._log_operation("Creating site", org_id=org_id, domain=domain)
        return await self._execute_db_operation(
            "create_site",
            self.sites.create(
                org_id=org_id,
                domain=domain,
                name=(data.name or "").strip() or domain,
                settings=data.settings,
                status="pending_setup",
            ),
            conflict_message="Site already exists for this domain",
        )

    async def update_site(self, org_id: str, site_id: str, data: SiteUpdate) -> SeoSite:
        site = await self.sites.get_in_org(site_id, org_id)
        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            return site
        return await self.sites.apply(site, **update_data)

    async def delete_site(self, org_id: str, site_id: str) -> None:
        site = await self.sites.get_in_org(site_id, org_id)
        self._log_operation("Deleting site", site_id=site_id)
        await self._execute_db_operation("delete_site", self.sites.remove(site))

    async def request_crawl(self, org_id: str, site_id: str, created_by: str | None) -> BackgroundJob:
        await self.sites.get_in_org(site_id, org_id)
        return await JobService(self.session).enqueue(
            "crawl_sitemap", {"site_id": site_id}, org_id=org_id, created_by=created_by,
        )

    async def request_analysis(self, org_id: str, site_id: str, created_by: str | None) -> BackgroundJob:
        await self.sites.get_in_org(site_id, org_id)
        return await JobService(self.session).enqueue(
            "seo_ai_analyze", {"site_id": site_id}, org_id=org_id, created_by=created_by,
        )

    async def get_job(self, org_id: str, job_id: str) -> BackgroundJob:
        return await BackgroundJobRepository(self.session).get_in_org(job_id, org_id)

    # -------------------------------------------------------------------------
    # Job handler bodies
    # -------------------------------------------------------------------------

    async def crawl_site(self, site_id: str) -> dict[str, Any]:
        """Fetch the sitemap and upsert one page per URL."""
        site = await self.sites.get_by_id(site_id)
        async with self.sitemap_client_factory(site.domain) as client:
            entries = await client.fetch_entries()

        now = utc_now()
        created = updated = 0
        for entry in entries:
            page = await self.pages.get_by_url(site.id, entry.url)
            if page is None:
                await self.pages.create(
                    org_id=site.org_id,
                    site_id=site.id,
                    url=entry.url,
                    path=entry.path,
                    lastmod=entry.lastmod,
                    last_crawled_at=now,
                )
                created += 1
            else:
                await self.pages.apply(page, lastmod=entry.lastmod, last_crawled_at=now)
                updated += 1

        await self.sites.apply(site, last_crawled_at=now, status="active")
        self._log_operation("Sitemap crawled", site_id=site.id, created=created, updated=updated)
        return {"site_id": site.id, "pages": len(entries), "created": created, "updated": updated}

    async def analyze_site(self, site_id: str) -> dict[str, Any]:
        """Ask the model to review page metadata and store its recommendations."""
        site = await self.sites.get_by_id(site_id)
        pages, _ = await self.pages.list_for_site(site.id, limit=ANALYZE_PAGE_LIMIT)
        if not pages:
            return {"site_id": site.id, "recommendations": 0}

        listing = "\n".join(
            json.dumps({"url": p.url, "title": p.title, "meta_description": p.meta_description})
            for p in pages
        )
        reply = await self.llm.complete(
            [
                {"role": "system", "content": ANALYZE_SYSTEM_PROMPT},
                {"role": "user", "content": f"Site: {site.domain}\nPages:\n{listing}"},
            ]
        )

        by_url = {p.url: p for p in pages}
        created = 0
        for item in parse_recommendations(reply):
            page = by_url.get(item.get("url"))
            rec_type = str(item.get("type") or "general")
            field = APPLICABLE_RECOMMENDATION_FIELDS.get(rec_type)
            await self.recommendations.create(
                org_id=site.org_id,
                site_id=site.id,
                page_id=page.id if page else None,
                type=rec_type,
                priority=item.get("priority") if item.get("priority") in ("low", "medium", "high") else "medium",
                title=str(item.get("title") or rec_type)[:255],
                description=item.get("description"),
                current_value=getattr(page, field) if page is not None and field else None,
                suggested_value=item.get("suggested_value"),
                status="pending",
            )
            created += 1

        self._log_operation("Site analyzed", site_id=site.id, recommendations=created)
        return {"site_id": site.id, "recommendations": created}

    # -------------------------------------------------------------------------
    # Pages, keywords, recommendations
    # -------------------------------------------------------------------------

    async def list_pages(
        self, org_id: str, site_id: str | None, page_type: str | None = None, limit: int = 50, offset: int = 0,
    ) -> tuple[list[SeoPage], int]:
        self._validate_required({"site_id": site_id}, ["site_id"])
        await self.sites.get_in_org(site_id, org_id)
        return await self.pages.list_for_site(site_id, page_type=page_type, limit=limit, offset=offset)

    async def get_page(self, org_id: str, page_id: str) -> SeoPage:
        return await self.pages.get_in_org(page_id, org_id)

    async def update_page(self, org_id: str, page_id: str, data: PageUpdate) -> SeoPage:
        page = await self.pages.get_in_org(page_id, org_id)
        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            return page
        return await self.pages.apply(page, **update_data)

    async def list_keywords(
        self,
        org_id: str,
        site_id: str | None,
        is_tracked: bool | None = None,
        is_local: bool | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[SeoKeyword], int]:
        self._validate_required({"site_id": site_id}, ["site_id"])
        await self.sites.get_in_org(site_id, org_id)
        return await self.keywords.list_for_site(
            site_id, is_tracked=is_tracked, is_local=is_local, limit=limit, offset=offset,
        )

    async def add_keyword(self, org_id: str, data: KeywordCreate) -> SeoKeyword:
        await self.sites.get_in_org(data.site_id, org_id)
        return await self._execute_db_operation(
            "add_keyword",
            self.keywords.create(
                org_id=org_id,
                site_id=data.site_id,
                keyword=data.keyword.strip(),
                is_tracked=data.is_tracked,
                is_local=data.is_local,
                target_url=data.target_url,
            ),
            conflict_message="Keyword already exists for this site",
        )

    async def set_keyword_tracking(self, org_id: str, keyword_id: str, tracked: bool) -> SeoKeyword:
        keyword = await self.keywords.get_in_org(keyword_id, org_id)
        return await self.keywords.apply(keyword, is_tracked=tracked)

    async def list_recommendations(
        self, org_id: str, site_id: str | None, status: str | None = None,
    ) -> list[SeoRecommendation]:
        self._validate_required({"site_id": site_id}, ["site_id"])
        await self.sites.get_in_org(site_id, org_id)
        return await self.recommendations.list_for_site(site_id, status=status)

    async def update_recommendation(
        self, org_id: str, recommendation_id: str, data: RecommendationUpdate,
    ) -> SeoRecommendation:
        rec = await self.recommendations.get_in_org(recommendation_id, org_id)
        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            return rec
        return await self.recommendations.apply(rec, **update_data)

    async def apply_recommendation(self, org_id: str, recommendation_id: str) -> SeoRecommendation:
        """
        Mark a recommendation applied.

        Title and meta description recommendations also write the
        suggested value onto their page.
        """
        rec = await self.recommendations.get_in_org(recommendation_id, org_id)
        if rec.status == "applied":
            raise ConflictError("Recommendation already applied")

        field = APPLICABLE_RECOMMENDATION_FIELDS.get(rec.type)
        if field and rec.page_id and rec.suggested_value:
            page = await self.pages.get_by_id_or_none(rec.page_id)
            if page is not None:
                await self.pages.apply(page, **{field: rec.suggested_value})

        self._log_operation("Recommendation applied", recommendation_id=rec.id, type=rec.type)
        return await self.recommendations.apply(rec, status="applied", applied_at=utc_now())
