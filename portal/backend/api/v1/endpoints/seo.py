"""
SEO API Endpoints.

Sites, crawled pages, keywords and AI recommendations. Crawls and
analyses run as background jobs; the request returns 202 with the job id.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from portal.backend.core.dependencies import DbSession, RequestId, StaffAuth
from portal.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from portal.backend.schemas.base import ApiResponse, JobAccepted
from portal.backend.schemas.job import JobResponse
from portal.backend.schemas.seo import (
    KeywordCreate,
    KeywordResponse,
    PageResponse,
    PageUpdate,
    RecommendationResponse,
    RecommendationUpdate,
    SiteCreate,
    SiteResponse,
    SiteUpdate,
)
from portal.backend.services.seo import SeoService

router = APIRouter()


# =============================================================================
# Sites
# =============================================================================


@router.get("/sites", response_model=ApiResponse[list[SiteResponse]], summary="List sites")
async def list_sites(auth: StaffAuth, db: DbSession) -> ApiResponse[list[SiteResponse]]:
    sites = await SeoService(db).list_sites(auth.require_org())
    return ApiResponse(data=[SiteResponse.model_validate(s) for s in sites])


@router.post(
    "/sites",
    response_model=ApiResponse[SiteResponse],
    status_code=201,
    summary="Add a site",
    description="The domain is lowercased with scheme and trailing slash stripped. Duplicates return 409.",
)
async def create_site(data: SiteCreate, auth: StaffAuth, db: DbSession) -> ApiResponse[SiteResponse]:
    site = await SeoService(db).create_site(auth.require_org(), data)
    return ApiResponse(data=SiteResponse.model_validate(site))


@router.get("/sites/{site_id}", response_model=ApiResponse[SiteResponse], summary="Get a site")
async def get_site(site_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[SiteResponse]:
    site = await SeoService(db).get_site(auth.require_org(), site_id)
    return ApiResponse(data=SiteResponse.model_validate(site))


@router.patch("/sites/{site_id}", response_model=ApiResponse[SiteResponse], summary="Update a site")
async def update_site(site_id: str, data: SiteUpdate, auth: StaffAuth, db: DbSession) -> ApiResponse[SiteResponse]:
    site = await SeoService(db).update_site(auth.require_org(), site_id, data)
    return ApiResponse(data=SiteResponse.model_validate(site))


@router.delete("/sites/{site_id}", status_code=204, summary="Delete a site")
async def delete_site(site_id: str, auth: StaffAuth, db: DbSession) -> None:
    await SeoService(db).delete_site(auth.require_org(), site_id)


@router.post(
    "/sites/{site_id}/crawl",
    response_model=ApiResponse[JobAccepted],
    status_code=202,
    summary="Crawl the sitemap",
)
async def crawl_site(site_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[JobAccepted]:
    job = await SeoService(db).request_crawl(auth.require_org(), site_id, auth.contact_id)
    return ApiResponse(data=JobAccepted(job_id=job.id, status=job.status))


@router.post(
    "/sites/{site_id}/analyze",
    response_model=ApiResponse[JobAccepted],
    status_code=202,
    summary="Generate AI recommendations",
)
async def analyze_site(site_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[JobAccepted]:
    job = await SeoService(db).request_analysis(auth.require_org(), site_id, auth.contact_id)
    return ApiResponse(data=JobAccepted(job_id=job.id, status=job.status))


@router.get("/sites/{site_id}/pages", summary="Pages of a site (paginated)")
async def list_site_pages(
    site_id: str,
    auth: StaffAuth,
    db: DbSession,
    request_id: RequestId,
    page_type: str | None = Query(default=None),
    pagination: PaginationParams = Depends(get_pagination_params),
) -> dict[str, Any]:
    pages, total = await SeoService(db).list_pages(
        auth.require_org(), site_id, page_type=page_type, limit=pagination.limit, offset=pagination.offset,
    )
    return create_paginated_response(
        items=pages,
        item_schema=PageResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.get("/sites/{site_id}/keywords", summary="Keywords of a site (paginated)")
async def list_site_keywords(
    site_id: str,
    auth: StaffAuth,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
) -> dict[str, Any]:
    keywords, total = await SeoService(db).list_keywords(
        auth.require_org(), site_id, limit=pagination.limit, offset=pagination.offset,
    )
    return create_paginated_response(
        items=keywords,
        item_schema=KeywordResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.get(
    "/sites/{site_id}/recommendations",
    response_model=ApiResponse[list[RecommendationResponse]],
    summary="Recommendations of a site",
)
async def list_site_recommendations(
    site_id: str,
    auth: StaffAuth,
    db: DbSession,
    status: str | None = Query(default="pending"),
) -> ApiResponse[list[RecommendationResponse]]:
    recs = await SeoService(db).list_recommendations(auth.require_org(), site_id, status=status)
    return ApiResponse(data=[RecommendationResponse.model_validate(r) for r in recs])


@router.get("/jobs/{job_id}", response_model=ApiResponse[JobResponse], summary="SEO job status")
async def get_job(job_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[JobResponse]:
    job = await SeoService(db).get_job(auth.require_org(), job_id)
    return ApiResponse(data=JobResponse.model_validate(job))


# =============================================================================
# Pages
# =============================================================================


@router.get("/pages", summary="List crawled pages (paginated)")
async def list_pages(
    auth: StaffAuth,
    db: DbSession,
    request_id: RequestId,
    site_id: str | None = Query(default=None),
    page_type: str | None = Query(default=None),
    pagination: PaginationParams = Depends(get_pagination_params),
) -> dict[str, Any]:
    pages, total = await SeoService(db).list_pages(
        auth.require_org(), site_id, page_type=page_type, limit=pagination.limit, offset=pagination.offset,
    )
    return create_paginated_response(
        items=pages,
        item_schema=PageResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.get("/pages/{page_id}", response_model=ApiResponse[PageResponse], summary="Get a page")
async def get_page(page_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[PageResponse]:
    page = await SeoService(db).get_page(auth.require_org(), page_id)
    return ApiResponse(data=PageResponse.model_validate(page))


@router.patch("/pages/{page_id}", response_model=ApiResponse[PageResponse], summary="Update page metadata")
async def update_page(page_id: str, data: PageUpdate, auth: StaffAuth, db: DbSession) -> ApiResponse[PageResponse]:
    page = await SeoService(db).update_page(auth.require_org(), page_id, data)
    return ApiResponse(data=PageResponse.model_validate(page))


# =============================================================================
# Keywords
# =============================================================================


@router.get("/keywords", summary="List keywords (paginated)")
async def list_keywords(
    auth: StaffAuth,
    db: DbSession,
    request_id: RequestId,
    site_id: str | None = Query(default=None),
    is_tracked: bool | None = Query(default=None),
    is_local: bool | None = Query(default=None),
    pagination: PaginationParams = Depends(get_pagination_params),
) -> dict[str, Any]:
    keywords, total = await SeoService(db).list_keywords(
        auth.require_org(),
        site_id,
        is_tracked=is_tracked,
        is_local=is_local,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return create_paginated_response(
        items=keywords,
        item_schema=KeywordResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post("/keywords", response_model=ApiResponse[KeywordResponse], status_code=201, summary="Add a keyword")
async def add_keyword(data: KeywordCreate, auth: StaffAuth, db: DbSession) -> ApiResponse[KeywordResponse]:
    keyword = await SeoService(db).add_keyword(auth.require_org(), data)
    return ApiResponse(data=KeywordResponse.model_validate(keyword))


@router.post("/keywords/{keyword_id}/track", response_model=ApiResponse[KeywordResponse], summary="Track a keyword")
async def track_keyword(keyword_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[KeywordResponse]:
    keyword = await SeoService(db).set_keyword_tracking(auth.require_org(), keyword_id, True)
    return ApiResponse(data=KeywordResponse.model_validate(keyword))


@router.delete(
    "/keywords/{keyword_id}/track",
    response_model=ApiResponse[KeywordResponse],
    summary="Stop tracking a keyword",
)
async def untrack_keyword(keyword_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[KeywordResponse]:
    keyword = await SeoService(db).set_keyword_tracking(auth.require_org(), keyword_id, False)
    return ApiResponse(data=KeywordResponse.model_validate(keyword))


# =============================================================================
# Recommendations
# =============================================================================


@router.get(
    "/recommendations",
    response_model=ApiResponse[list[RecommendationResponse]],
    summary="List recommendations",
)
async def list_recommendations(
    auth: StaffAuth,
    db: DbSession,
    site_id: str | None = Query(default=None),
    status: str | None = Query(default=None),
) -> ApiResponse[list[RecommendationResponse]]:
    recs = await SeoService(db).list_recommendations(auth.require_org(), site_id, status=status)
    return ApiResponse(data=[RecommendationResponse.model_validate(r) for r in recs])


@router.patch(
    "/recommendations/{recommendation_id}",
    response_model=ApiResponse[RecommendationResponse],
    summary="Update a recommendation",
)
async def update_recommendation(
    recommendation_id: str, data: RecommendationUpdate, auth: StaffAuth, db: DbSession,
) -> ApiResponse[RecommendationResponse]:
    rec = await SeoService(db).update_recommendation(auth.require_org(), recommendation_id, data)
    return ApiResponse(data=RecommendationResponse.model_validate(rec))


@router.post(
    "/recommendations/{recommendation_id}/apply",
    response_model=ApiResponse[RecommendationResponse],
    summary="Apply a recommendation",
    description="Title and meta description recommendations also update their page.",
)
async def apply_recommendation(
    recommendation_id: str, auth: StaffAuth, db: DbSession,
) -> ApiResponse[RecommendationResponse]:
    rec = await SeoService(db).apply_recommendation(auth.require_org(), recommendation_id)
    return ApiResponse(data=RecommendationResponse.model_validate(rec))
