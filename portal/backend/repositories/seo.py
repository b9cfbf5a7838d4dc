"""
SEO Repositories.

Data access for sites, pages, keywords, and recommendations.
"""

from portal.backend.models.seo import SeoKeyword, SeoPage, SeoRecommendation, SeoSite
from portal.backend.repositories.base import BaseRepository


class SeoSiteRepository(BaseRepository[SeoSite]):
    model = SeoSite
    label = "Site"

    async def list_for_org(self, org_id: str) -> list[SeoSite]:
        return await self.find(SeoSite.org_id == org_id, order_by=SeoSite.created_at.desc())

    async def get_by_domain(self, org_id: str, domain: str) -> SeoSite | None:
        return await self.find_one(SeoSite.org_id == org_id, SeoSite.domain == domain)


class SeoPageRepository(BaseRepository[SeoPage]):
    model = SeoPage
    label = "Page"

    async def list_for_site(
        self,
        site_id: str,
        page_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[SeoPage], int]:
        conditions = [SeoPage.site_id == site_id]
        if page_type:
            conditions.append(SeoPage.page_type == page_type)
        items = await self.find(*conditions, order_by=SeoPage.url.asc(), limit=limit, offset=offset)
        return items, await self.count(*conditions)

    async def get_by_url(self, site_id: str, url: str) -> SeoPage | None:
        return await self.find_one(SeoPage.site_id == site_id, SeoPage.url == url)


class SeoKeywordRepository(BaseRepository[SeoKeyword]):
    model = SeoKeyword
    label = "Keyword"

    async def list_for_site(
        self,
        site_id: str,
        is_tracked: bool | None = None,
        is_local: bool | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[SeoKeyword], int]:
        conditions = [SeoKeyword.site_id == site_id]
        if is_tracked is not None:
            conditions.append(SeoKeyword.is_tracked.is_(is_tracked))
        if is_local is not None:
            conditions.append(SeoKeyword.is_local.is_(is_local))
        items = await self.find(
            *conditions, order_by=SeoKeyword.keyword.asc(), limit=limit, offset=offset,
        )
        return items, await self.count(*conditions)


class SeoRecommendationRepository(BaseRepository[SeoRecommendation]):
    model = SeoRecommendation
    label = "Recommendation"

    async def list_for_site(
        self, site_id: str, status: str | None = None, limit: int = 100,
    ) -> list[SeoRecommendation]:
        conditions = [SeoRecommendation.site_id == site_id]
        if status:
            conditions.append(SeoRecommendation.status == status)
        return await self.find(
            *conditions, order_by=SeoRecommendation.created_at.desc(), limit=limit,
        )
