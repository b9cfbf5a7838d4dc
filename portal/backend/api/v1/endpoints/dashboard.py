"""
Dashboard API Endpoints.

Read-only aggregates for the staff home screen.
"""

from fastapi import APIRouter, Query

from portal.backend.core.dependencies import DbSession, StaffAuth
from portal.backend.schemas.base import ApiResponse
from portal.backend.schemas.dashboard import ActivityEvent, Overview, PeriodStats, RevenueMonth
from portal.backend.services.dashboard import DashboardService

router = APIRouter()


@router.get("/overview", response_model=ApiResponse[Overview], summary="Headline counts")
async def overview(auth: StaffAuth, db: DbSession) -> ApiResponse[Overview]:
    data = await DashboardService(db).overview(auth.require_org(), auth.contact_id)
    return ApiResponse(data=Overview(**data))


@router.get(
    "/stats",
    response_model=ApiResponse[PeriodStats],
    summary="Period statistics",
    description="period is '<N>d', e.g. 7d, 30d, 90d. Defaults to 30d.",
)
async def stats(
    auth: StaffAuth,
    db: DbSession,
    period: str | None = Query(default=None, examples=["30d"]),
) -> ApiResponse[PeriodStats]:
    data = await DashboardService(db).stats(auth.require_org(), period)
    return ApiResponse(data=PeriodStats(**data))


@router.get("/activity", response_model=ApiResponse[list[ActivityEvent]], summary="Recent activity")
async def activity(
    auth: StaffAuth,
    db: DbSession,
    limit: int = Query(default=20, ge=1, le=100),
) -> ApiResponse[list[ActivityEvent]]:
    events = await DashboardService(db).activity(auth.require_org(), limit=limit)
    return ApiResponse(data=[ActivityEvent(**e) for e in events])


@router.get("/pipeline", response_model=ApiResponse[dict[str, int]], summary="Prospects per stage")
async def pipeline(auth: StaffAuth, db: DbSession) -> ApiResponse[dict[str, int]]:
    return ApiResponse(data=await DashboardService(db).pipeline(auth.require_org()))


@router.get("/revenue", response_model=ApiResponse[list[RevenueMonth]], summary="Monthly revenue")
async def revenue(
    auth: StaffAuth,
    db: DbSession,
    months: int = Query(default=6, ge=1, le=36),
) -> ApiResponse[list[RevenueMonth]]:
    rows = await DashboardService(db).revenue(auth.require_org(), months=months)
    return ApiResponse(data=[RevenueMonth(**r) for r in rows])
