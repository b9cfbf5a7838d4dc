"""
Admin API Endpoints.

Organizations (platform admins), organization members (platform admins
and org owners/admins), and client invites.
"""

from fastapi import APIRouter, Query

from portal.backend.core.dependencies import AdminAuth, CurrentAuth, DbSession
from portal.backend.schemas.admin import (
    ClientInvite,
    InviteResponse,
    MemberCreate,
    MemberResponse,
    MemberUpdate,
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
)
from portal.backend.schemas.auth import ContactResponse
from portal.backend.schemas.base import ApiResponse
from portal.backend.services.admin import AdminService, setup_url

router = APIRouter()


# =============================================================================
# Organizations
# =============================================================================


@router.get("/organizations", response_model=ApiResponse[list[OrganizationResponse]], summary="List organizations")
async def list_organizations(
    auth: AdminAuth,
    db: DbSession,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> ApiResponse[list[OrganizationResponse]]:
    orgs = await AdminService(db).list_organizations(limit=limit, offset=offset)
    return ApiResponse(data=[OrganizationResponse.model_validate(o) for o in orgs])


@router.post(
    "/organizations",
    response_model=ApiResponse[OrganizationResponse],
    status_code=201,
    summary="Create an organization",
    description="Slug must match [a-z0-9-]+ and be unique. Features are merged over the defaults.",
)
async def create_organization(
    data: OrganizationCreate, auth: AdminAuth, db: DbSession,
) -> ApiResponse[OrganizationResponse]:
    org = await AdminService(db).create_organization(data)
    return ApiResponse(data=OrganizationResponse.model_validate(org))


@router.get(
    "/organizations/{org_id}",
    response_model=ApiResponse[OrganizationResponse],
    summary="Get an organization",
)
async def get_organization(org_id: str, auth: AdminAuth, db: DbSession) -> ApiResponse[OrganizationResponse]:
    org = await AdminService(db).get_organization(org_id)
    return ApiResponse(data=OrganizationResponse.model_validate(org))


@router.patch(
    "/organizations/{org_id}",
    response_model=ApiResponse[OrganizationResponse],
    summary="Update an organization",
)
async def update_organization(
    org_id: str, data: OrganizationUpdate, auth: AdminAuth, db: DbSession,
) -> ApiResponse[OrganizationResponse]:
    org = await AdminService(db).update_organization(org_id, data)
    return ApiResponse(data=OrganizationResponse.model_validate(org))


# =============================================================================
# Members
# =============================================================================


@router.get(
    "/organizations/{org_id}/members",
    response_model=ApiResponse[list[MemberResponse]],
    summary="List members",
)
async def list_members(org_id: str, auth: CurrentAuth, db: DbSession) -> ApiResponse[list[MemberResponse]]:
    members = await AdminService(db).list_members(auth.contact, org_id)
    return ApiResponse(data=[MemberResponse(**m) for m in members])


@router.post(
    "/organizations/{org_id}/members",
    response_model=ApiResponse[MemberResponse],
    status_code=201,
    summary="Add a member",
    description="Creates an invited contact when the email is new to the organization.",
)
async def add_member(
    org_id: str, data: MemberCreate, auth: CurrentAuth, db: DbSession,
) -> ApiResponse[MemberResponse]:
    member = await AdminService(db).add_member(auth.contact, org_id, data)
    return ApiResponse(data=MemberResponse(**member))


@router.patch(
    "/organizations/{org_id}/members/{member_id}",
    response_model=ApiResponse[MemberResponse],
    summary="Change a member's role or access",
)
async def update_member(
    org_id: str, member_id: str, data: MemberUpdate, auth: CurrentAuth, db: DbSession,
) -> ApiResponse[MemberResponse]:
    member = await AdminService(db).update_member(auth.contact, org_id, member_id, data)
    return ApiResponse(data=MemberResponse(**member))


@router.delete("/organizations/{org_id}/members/{member_id}", status_code=204, summary="Remove a member")
async def remove_member(org_id: str, member_id: str, auth: CurrentAuth, db: DbSession) -> None:
    await AdminService(db).remove_member(auth.contact, org_id, member_id)


# =============================================================================
# Clients
# =============================================================================


@router.post(
    "/clients",
    response_model=ApiResponse[InviteResponse],
    status_code=201,
    summary="Invite a client",
    description="Creates the client contact and returns its account setup link.",
)
async def invite_client(data: ClientInvite, auth: AdminAuth, db: DbSession) -> ApiResponse[InviteResponse]:
    contact = await AdminService(db).invite_client(auth.require_org(), data)
    return ApiResponse(
        data=InviteResponse(
            contact=ContactResponse.model_validate(contact),
            invite_token=contact.invite_token,
            invite_expires_at=contact.invite_expires_at,
            setup_url=setup_url(contact.invite_token),
        )
    )
