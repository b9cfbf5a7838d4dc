"""
CRM API Endpoints.

Prospects and their pipeline, calls, tracked emails, follow-ups,
tasks, notifications, notes and staff users. Staff only.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from portal.backend.core.dependencies import CurrentAuth, DbSession, RequestId, StaffAuth
from portal.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from portal.backend.schemas.base import ApiResponse
from portal.backend.schemas.crm import (
    ActivityItem,
    CallLogResponse,
    ConvertResponse,
    FollowUpResponse,
    FollowUpUpdate,
    MarkedRead,
    NoteCreate,
    NoteResponse,
    NotificationResponse,
    ProspectConvert,
    ProspectCreate,
    ProspectResponse,
    ProspectUpdate,
    StaffUserResponse,
    TaskResponse,
    TaskUpdate,
    TrackedEmailResponse,
)
from portal.backend.services.crm import CrmService

router = APIRouter()


# =============================================================================
# Prospects
# =============================================================================


@router.get("/prospects", summary="List prospects (paginated)")
async def list_prospects(
    auth: StaffAuth,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    stage: str | None = Query(default=None, description="Pipeline stage"),
    rep: str | None = Query(default=None, description="Assigned sales rep contact id"),
    search: str | None = Query(default=None, max_length=100, description="Name, email or company"),
) -> dict[str, Any]:
    prospects, total = await CrmService(db).list_prospects(
        auth.require_org(),
        stage=stage,
        rep=rep,
        search=search,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return create_paginated_response(
        items=prospects,
        item_schema=ProspectResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post(
    "/prospects",
    response_model=ApiResponse[ProspectResponse],
    status_code=201,
    summary="Create a prospect",
)
async def create_prospect(data: ProspectCreate, auth: StaffAuth, db: DbSession) -> ApiResponse[ProspectResponse]:
    prospect = await CrmService(db).create_prospect(auth.require_org(), data)
    return ApiResponse(data=ProspectResponse.model_validate(prospect))


@router.get("/prospects/{prospect_id}", response_model=ApiResponse[ProspectResponse], summary="Get a prospect")
async def get_prospect(prospect_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[ProspectResponse]:
    prospect = await CrmService(db).get_prospect(auth.require_org(), prospect_id)
    return ApiResponse(data=ProspectResponse.model_validate(prospect))


@router.patch("/prospects/{prospect_id}", response_model=ApiResponse[ProspectResponse], summary="Update a prospect")
async def update_prospect(
    prospect_id: str, data: ProspectUpdate, auth: StaffAuth, db: DbSession,
) -> ApiResponse[ProspectResponse]:
    prospect = await CrmService(db).update_prospect(auth.require_org(), prospect_id, data)
    return ApiResponse(data=ProspectResponse.model_validate(prospect))


@router.delete("/prospects/{prospect_id}", status_code=204, summary="Delete a prospect")
async def delete_prospect(prospect_id: str, auth: StaffAuth, db: DbSession) -> None:
    await CrmService(db).delete_prospect(auth.require_org(), prospect_id)


@router.get(
    "/prospects/{prospect_id}/activity",
    response_model=ApiResponse[list[ActivityItem]],
    summary="Prospect timeline",
    description="Calls, tracked emails and notes merged newest first.",
)
async def get_activity(prospect_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[list[ActivityItem]]:
    items = await CrmService(db).get_activity(auth.require_org(), prospect_id)
    return ApiResponse(data=[ActivityItem.model_validate(item) for item in items])


@router.post(
    "/prospects/{prospect_id}/convert",
    response_model=ApiResponse[ConvertResponse],
    summary="Convert a prospect to a client",
)
async def convert_prospect(
    prospect_id: str, data: ProspectConvert, auth: StaffAuth, db: DbSession,
) -> ApiResponse[ConvertResponse]:
    contact, project = await CrmService(db).convert_prospect(auth.require_org(), prospect_id, data)
    return ApiResponse(
        data=ConvertResponse(
            contact=ProspectResponse.model_validate(contact),
            project_id=project.id if project else None,
        )
    )


# =============================================================================
# Calls and emails
# =============================================================================


@router.get("/calls", response_model=ApiResponse[list[CallLogResponse]], summary="List call logs")
async def list_calls(
    auth: StaffAuth,
    db: DbSession,
    contact_id: str | None = Query(default=None),
    pagination: PaginationParams = Depends(get_pagination_params),
) -> ApiResponse[list[CallLogResponse]]:
    calls = await CrmService(db).list_calls(
        auth.require_org(), contact_id=contact_id, limit=pagination.limit, offset=pagination.offset,
    )
    return ApiResponse(data=[CallLogResponse.model_validate(c) for c in calls])


@router.get("/calls/{call_id}", response_model=ApiResponse[CallLogResponse], summary="Get a call log")
async def get_call(call_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[CallLogResponse]:
    call = await CrmService(db).get_call(auth.require_org(), call_id)
    return ApiResponse(data=CallLogResponse.model_validate(call))


@router.get("/emails", response_model=ApiResponse[list[TrackedEmailResponse]], summary="List tracked emails")
async def list_emails(
    auth: StaffAuth,
    db: DbSession,
    contact_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
) -> ApiResponse[list[TrackedEmailResponse]]:
    emails = await CrmService(db).list_emails(auth.require_org(), contact_id=contact_id, limit=limit)
    return ApiResponse(data=[TrackedEmailResponse.model_validate(e) for e in emails])


# =============================================================================
# Follow-ups and tasks
# =============================================================================


@router.get(
    "/follow-ups",
    response_model=ApiResponse[list[FollowUpResponse]],
    summary="My follow-ups",
    description="Follow-ups assigned to the current contact.",
)
async def list_follow_ups(
    auth: StaffAuth,
    db: DbSession,
    status: str = Query(default="pending"),
) -> ApiResponse[list[FollowUpResponse]]:
    items = await CrmService(db).list_follow_ups(auth.require_org(), auth.contact_id, status=status)
    return ApiResponse(data=[FollowUpResponse.model_validate(f) for f in items])


@router.patch("/follow-ups/{follow_up_id}", response_model=ApiResponse[FollowUpResponse], summary="Update a follow-up")
async def update_follow_up(
    follow_up_id: str, data: FollowUpUpdate, auth: StaffAuth, db: DbSession,
) -> ApiResponse[FollowUpResponse]:
    follow_up = await CrmService(db).update_follow_up(auth.require_org(), follow_up_id, data)
    return ApiResponse(data=FollowUpResponse.model_validate(follow_up))


@router.get("/tasks", response_model=ApiResponse[list[TaskResponse]], summary="List tasks")
async def list_tasks(
    auth: StaffAuth,
    db: DbSession,
    status: str | None = Query(default=None),
    assigned_to: str | None = Query(default=None),
) -> ApiResponse[list[TaskResponse]]:
    tasks = await CrmService(db).list_tasks(auth.require_org(), status=status, assigned_to=assigned_to)
    return ApiResponse(data=[TaskResponse.model_validate(t) for t in tasks])


@router.patch("/tasks/{task_id}", response_model=ApiResponse[TaskResponse], summary="Update a task")
async def update_task(task_id: str, data: TaskUpdate, auth: StaffAuth, db: DbSession) -> ApiResponse[TaskResponse]:
    task = await CrmService(db).update_task(auth.require_org(), task_id, data)
    return ApiResponse(data=TaskResponse.model_validate(task))


# =============================================================================
# Notifications, notes, users
# =============================================================================


@router.get("/notifications", response_model=ApiResponse[list[NotificationResponse]], summary="My notifications")
async def list_notifications(
    auth: CurrentAuth,
    db: DbSession,
    unread_only: bool = Query(default=False),
) -> ApiResponse[list[NotificationResponse]]:
    items = await CrmService(db).list_notifications(
        auth.require_org(), auth.contact_id, unread_only=unread_only,
    )
    return ApiResponse(data=[NotificationResponse.model_validate(n) for n in items])


@router.post(
    "/notifications/read-all",
    response_model=ApiResponse[MarkedRead],
    summary="Mark all notifications read",
)
async def mark_all_read(auth: CurrentAuth, db: DbSession) -> ApiResponse[MarkedRead]:
    updated = await CrmService(db).mark_all_notifications_read(auth.require_org(), auth.contact_id)
    return ApiResponse(data=MarkedRead(updated=updated))


@router.post(
    "/notifications/{notification_id}/read",
    response_model=ApiResponse[NotificationResponse],
    summary="Mark a notification read",
)
async def mark_read(notification_id: str, auth: CurrentAuth, db: DbSession) -> ApiResponse[NotificationResponse]:
    notification = await CrmService(db).mark_notification_read(
        auth.require_org(), auth.contact_id, notification_id,
    )
    return ApiResponse(data=NotificationResponse.model_validate(notification))


@router.post("/notes", response_model=ApiResponse[NoteResponse], status_code=201, summary="Add a note")
async def add_note(data: NoteCreate, auth: StaffAuth, db: DbSession) -> ApiResponse[NoteResponse]:
    note = await CrmService(db).add_note(auth.require_org(), auth.contact_id, data)
    return ApiResponse(data=NoteResponse.model_validate(note))


@router.get("/users", response_model=ApiResponse[list[StaffUserResponse]], summary="Staff users")
async def list_users(auth: StaffAuth, db: DbSession) -> ApiResponse[list[StaffUserResponse]]:
    users = await CrmService(db).list_users(auth.require_org())
    return ApiResponse(data=[StaffUserResponse.model_validate(u) for u in users])
