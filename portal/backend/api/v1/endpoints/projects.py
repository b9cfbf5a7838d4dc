"""
Project API Endpoints.

Staff manage projects and checklists; clients see only their own
projects, read-only.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from portal.backend.core.dependencies import AuthContext, CurrentAuth, DbSession, RequestId, StaffAuth
from portal.backend.core.exceptions import NotFoundError
from portal.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from portal.backend.models.contact import STAFF_ROLES
from portal.backend.models.project import Project
from portal.backend.schemas.base import ApiResponse
from portal.backend.schemas.project import (
    ChecklistItemCreate,
    ChecklistItemResponse,
    ChecklistItemUpdate,
    ChecklistResponse,
    ProjectCreate,
    ProjectDetailResponse,
    ProjectResponse,
    ProjectUpdate,
)
from portal.backend.services.project import ProjectService

router = APIRouter()


def _ensure_visible(auth: AuthContext, project: Project) -> None:
    """Clients may only see projects they are the contact of."""
    if auth.contact.role not in STAFF_ROLES and project.contact_id != auth.contact_id:
        raise NotFoundError(f"Project not found: {project.id}")


@router.get("", summary="List projects (paginated)")
async def list_projects(
    auth: CurrentAuth,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    status: str | None = Query(default=None),
    contact_id: str | None = Query(default=None),
) -> dict[str, Any]:
    if auth.contact.role not in STAFF_ROLES:
        contact_id = auth.contact_id

    projects, total = await ProjectService(db).list_projects(
        auth.require_org(),
        status=status,
        contact_id=contact_id,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return create_paginated_response(
        items=projects,
        item_schema=ProjectResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post("", response_model=ApiResponse[ProjectResponse], status_code=201, summary="Create a project")
async def create_project(data: ProjectCreate, auth: StaffAuth, db: DbSession) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(db).create_project(auth.require_org(), data)
    return ApiResponse(data=ProjectResponse.model_validate(project))


@router.get(
    "/{project_id}",
    response_model=ApiResponse[ProjectDetailResponse],
    summary="Get a project",
    description="Project fields plus checklist progress.",
)
async def get_project(project_id: str, auth: CurrentAuth, db: DbSession) -> ApiResponse[ProjectDetailResponse]:
    detail = await ProjectService(db).get_project_detail(auth.require_org(), project_id)
    project = detail.pop("project")
    _ensure_visible(auth, project)
    return ApiResponse(
        data=ProjectDetailResponse(**ProjectResponse.model_validate(project).model_dump(), **detail)
    )


@router.patch("/{project_id}", response_model=ApiResponse[ProjectResponse], summary="Update a project")
async def update_project(
    project_id: str, data: ProjectUpdate, auth: StaffAuth, db: DbSession,
) -> ApiResponse[ProjectResponse]:
    project = await ProjectService(db).update_project(auth.require_org(), project_id, data)
    return ApiResponse(data=ProjectResponse.model_validate(project))


@router.delete("/{project_id}", status_code=204, summary="Delete a project")
async def delete_project(project_id: str, auth: StaffAuth, db: DbSession) -> None:
    await ProjectService(db).delete_project(auth.require_org(), project_id)


# =============================================================================
# Checklist
# =============================================================================


@router.get("/{project_id}/checklist", response_model=ApiResponse[ChecklistResponse], summary="Project checklist")
async def get_checklist(project_id: str, auth: CurrentAuth, db: DbSession) -> ApiResponse[ChecklistResponse]:
    service = ProjectService(db)
    _ensure_visible(auth, await service.get_project(auth.require_org(), project_id))
    checklist = await service.get_checklist(auth.require_org(), project_id)
    return ApiResponse(data=ChecklistResponse.model_validate(checklist, from_attributes=True))


@router.post(
    "/{project_id}/checklist",
    response_model=ApiResponse[ChecklistItemResponse],
    status_code=201,
    summary="Add a checklist item",
)
async def add_checklist_item(
    project_id: str, data: ChecklistItemCreate, auth: StaffAuth, db: DbSession,
) -> ApiResponse[ChecklistItemResponse]:
    item = await ProjectService(db).add_checklist_item(auth.require_org(), project_id, data)
    return ApiResponse(data=ChecklistItemResponse.model_validate(item))


@router.patch(
    "/{project_id}/checklist/{item_id}",
    response_model=ApiResponse[ChecklistItemResponse],
    summary="Update a checklist item",
)
async def update_checklist_item(
    project_id: str,
    item_id: str,
    data: ChecklistItemUpdate,
    auth: StaffAuth,
    db: DbSession,
) -> ApiResponse[ChecklistItemResponse]:
    item = await ProjectService(db).update_checklist_item(
        auth.require_org(), project_id, item_id, data, acting_contact_id=auth.contact_id,
    )
    return ApiResponse(data=ChecklistItemResponse.model_validate(item))


@router.delete("/{project_id}/checklist/{item_id}", status_code=204, summary="Delete a checklist item")
async def delete_checklist_item(project_id: str, item_id: str, auth: StaffAuth, db: DbSession) -> None:
    await ProjectService(db).delete_checklist_item(auth.require_org(), project_id, item_id)
