"""
Email Marketing API Endpoints.

Campaigns, templates, lists and subscribers (staff only), one-off
sends, and the public open/click tracking routes embedded in emails.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse, Response

from portal.backend.core.dependencies import DbSession, RequestId, StaffAuth
from portal.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from portal.backend.schemas.base import ApiResponse, JobAccepted
from portal.backend.schemas.email import (
    CampaignCreate,
    CampaignResponse,
    CampaignSchedule,
    CampaignStats,
    CampaignUpdate,
    ListCreate,
    ListResponse,
    SendEmailRequest,
    SendEmailResponse,
    SubscriberCreate,
    SubscriberResponse,
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
)
from portal.backend.services.email import TRACKING_PIXEL, EmailService

router = APIRouter()


# =============================================================================
# Tracking (public)
# =============================================================================


@router.get(
    "/track/open/{tracking_id}",
    summary="Open-tracking pixel",
    description="Public. Always answers with a 1x1 GIF, even for unknown ids.",
    response_class=Response,
)
async def track_open(tracking_id: str, db: DbSession) -> Response:
    await EmailService(db).track_open(tracking_id)
    return Response(
        content=TRACKING_PIXEL,
        media_type="image/gif",
        headers={"Cache-Control": "no-store, no-cache, must-revalidate, max-age=0"},
    )


@router.get(
    "/track/click/{tracking_id}",
    summary="Click-tracking redirect",
    description="Public. Records the click and redirects to url (absolute http(s) only).",
    response_class=RedirectResponse,
)
async def track_click(
    tracking_id: str,
    db: DbSession,
    url: str | None = Query(default=None, description="Destination URL"),
) -> RedirectResponse:
    destination = await EmailService(db).track_click(tracking_id, url)
    return RedirectResponse(url=destination, status_code=302)


# =============================================================================
# Campaigns
# =============================================================================


@router.get("/campaigns", summary="List campaigns (paginated)")
async def list_campaigns(
    auth: StaffAuth,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    status: str | None = Query(default=None),
) -> dict[str, Any]:
    campaigns, total = await EmailService(db).list_campaigns(
        auth.require_org(), status=status, limit=pagination.limit, offset=pagination.offset,
    )
    return create_paginated_response(
        items=campaigns,
        item_schema=CampaignResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post("/campaigns", response_model=ApiResponse[CampaignResponse], status_code=201, summary="Create a campaign")
async def create_campaign(data: CampaignCreate, auth: StaffAuth, db: DbSession) -> ApiResponse[CampaignResponse]:
    campaign = await EmailService(db).create_campaign(auth.require_org(), auth.contact_id, data)
    return ApiResponse(data=CampaignResponse.model_validate(campaign))


@router.get("/campaigns/{campaign_id}", response_model=ApiResponse[CampaignResponse], summary="Get a campaign")
async def get_campaign(campaign_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[CampaignResponse]:
    campaign = await EmailService(db).get_campaign(auth.require_org(), campaign_id)
    return ApiResponse(data=CampaignResponse.model_validate(campaign))


@router.patch("/campaigns/{campaign_id}", response_model=ApiResponse[CampaignResponse], summary="Update a campaign")
async def update_campaign(
    campaign_id: str, data: CampaignUpdate, auth: StaffAuth, db: DbSession,
) -> ApiResponse[CampaignResponse]:
    campaign = await EmailService(db).update_campaign(auth.require_org(), campaign_id, data)
    return ApiResponse(data=CampaignResponse.model_validate(campaign))


@router.delete("/campaigns/{campaign_id}", status_code=204, summary="Delete a campaign")
async def delete_campaign(campaign_id: str, auth: StaffAuth, db: DbSession) -> None:
    await EmailService(db).delete_campaign(auth.require_org(), campaign_id)


@router.post(
    "/campaigns/{campaign_id}/send",
    response_model=ApiResponse[JobAccepted],
    status_code=202,
    summary="Send a campaign now",
    description="Moves the campaign to sending and queues an email_campaign_send job.",
)
async def send_campaign(campaign_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[JobAccepted]:
    job = await EmailService(db).send_campaign(auth.require_org(), campaign_id, auth.contact_id)
    return ApiResponse(data=JobAccepted(job_id=job.id, status=job.status))


@router.post(
    "/campaigns/{campaign_id}/schedule",
    response_model=ApiResponse[CampaignResponse],
    summary="Schedule a campaign",
)
async def schedule_campaign(
    campaign_id: str, data: CampaignSchedule, auth: StaffAuth, db: DbSession,
) -> ApiResponse[CampaignResponse]:
    campaign = await EmailService(db).schedule_campaign(auth.require_org(), campaign_id, data.scheduled_at)
    return ApiResponse(data=CampaignResponse.model_validate(campaign))


@router.post("/campaigns/{campaign_id}/pause", response_model=ApiResponse[CampaignResponse], summary="Pause sending")
async def pause_campaign(campaign_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[CampaignResponse]:
    campaign = await EmailService(db).pause_campaign(auth.require_org(), campaign_id)
    return ApiResponse(data=CampaignResponse.model_validate(campaign))


@router.post("/campaigns/{campaign_id}/resume", response_model=ApiResponse[CampaignResponse], summary="Resume sending")
async def resume_campaign(campaign_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[CampaignResponse]:
    campaign = await EmailService(db).resume_campaign(auth.require_org(), campaign_id)
    return ApiResponse(data=CampaignResponse.model_validate(campaign))


@router.get("/campaigns/{campaign_id}/stats", response_model=ApiResponse[CampaignStats], summary="Campaign stats")
async def get_stats(campaign_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[CampaignStats]:
    stats = await EmailService(db).get_stats(auth.require_org(), campaign_id)
    return ApiResponse(data=CampaignStats(**stats))


# =============================================================================
# Templates
# =============================================================================


@router.get("/templates", response_model=ApiResponse[list[TemplateResponse]], summary="List templates")
async def list_templates(auth: StaffAuth, db: DbSession) -> ApiResponse[list[TemplateResponse]]:
    templates = await EmailService(db).list_templates(auth.require_org())
    return ApiResponse(data=[TemplateResponse.model_validate(t) for t in templates])


@router.post("/templates", response_model=ApiResponse[TemplateResponse], status_code=201, summary="Create a template")
async def create_template(data: TemplateCreate, auth: StaffAuth, db: DbSession) -> ApiResponse[TemplateResponse]:
    template = await EmailService(db).create_template(auth.require_org(), data)
    return ApiResponse(data=TemplateResponse.model_validate(template))


@router.get("/templates/{template_id}", response_model=ApiResponse[TemplateResponse], summary="Get a template")
async def get_template(template_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[TemplateResponse]:
    template = await EmailService(db).get_template(auth.require_org(), template_id)
    return ApiResponse(data=TemplateResponse.model_validate(template))


@router.patch("/templates/{template_id}", response_model=ApiResponse[TemplateResponse], summary="Update a template")
async def update_template(
    template_id: str, data: TemplateUpdate, auth: StaffAuth, db: DbSession,
) -> ApiResponse[TemplateResponse]:
    template = await EmailService(db).update_template(auth.require_org(), template_id, data)
    return ApiResponse(data=TemplateResponse.model_validate(template))


@router.delete("/templates/{template_id}", status_code=204, summary="Delete a template")
async def delete_template(template_id: str, auth: StaffAuth, db: DbSession) -> None:
    await EmailService(db).delete_template(auth.require_org(), template_id)


# =============================================================================
# Lists and subscribers
# =============================================================================


@router.get("/lists", response_model=ApiResponse[list[ListResponse]], summary="List mailing lists")
async def list_lists(auth: StaffAuth, db: DbSession) -> ApiResponse[list[ListResponse]]:
    lists = await EmailService(db).list_lists(auth.require_org())
    return ApiResponse(data=[ListResponse.model_validate(item) for item in lists])


@router.post("/lists", response_model=ApiResponse[ListResponse], status_code=201, summary="Create a mailing list")
async def create_list(data: ListCreate, auth: StaffAuth, db: DbSession) -> ApiResponse[ListResponse]:
    email_list = await EmailService(db).create_list(auth.require_org(), data)
    return ApiResponse(data=ListResponse.model_validate(email_list))


@router.delete("/lists/{list_id}", status_code=204, summary="Delete a mailing list")
async def delete_list(list_id: str, auth: StaffAuth, db: DbSession) -> None:
    await EmailService(db).delete_list(auth.require_org(), list_id)


@router.get(
    "/lists/{list_id}/subscribers",
    response_model=ApiResponse[list[SubscriberResponse]],
    summary="List subscribers",
)
async def list_subscribers(list_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[list[SubscriberResponse]]:
    subscribers = await EmailService(db).list_subscribers(auth.require_org(), list_id)
    return ApiResponse(data=[SubscriberResponse.model_validate(s) for s in subscribers])


@router.post(
    "/lists/{list_id}/subscribers",
    response_model=ApiResponse[SubscriberResponse],
    status_code=201,
    summary="Add a subscriber",
    description="Re-subscribes an address that had unsubscribed.",
)
async def add_subscriber(
    list_id: str, data: SubscriberCreate, auth: StaffAuth, db: DbSession,
) -> ApiResponse[SubscriberResponse]:
    subscriber = await EmailService(db).add_subscriber(auth.require_org(), list_id, data)
    return ApiResponse(data=SubscriberResponse.model_validate(subscriber))


@router.delete(
    "/lists/{list_id}/subscribers/{subscriber_id}",
    response_model=ApiResponse[SubscriberResponse],
    summary="Unsubscribe",
    description="The subscriber row is kept with status unsubscribed.",
)
async def unsubscribe(
    list_id: str, subscriber_id: str, auth: StaffAuth, db: DbSession,
) -> ApiResponse[SubscriberResponse]:
    subscriber = await EmailService(db).unsubscribe(auth.require_org(), list_id, subscriber_id)
    return ApiResponse(data=SubscriberResponse.model_validate(subscriber))


# =============================================================================
# One-off send
# =============================================================================


@router.post(
    "/send",
    response_model=ApiResponse[SendEmailResponse],
    status_code=202,
    summary="Send a single email",
    description="Sends through Resend and records a tracking row.",
)
async def send_email(data: SendEmailRequest, auth: StaffAuth, db: DbSession) -> ApiResponse[SendEmailResponse]:
    row = await EmailService(db).send_one(auth.require_org(), data)
    return ApiResponse(data=SendEmailResponse(tracking_id=row.id, provider_id=row.provider_id))
