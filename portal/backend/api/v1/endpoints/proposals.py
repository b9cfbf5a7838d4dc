"""
Proposal API Endpoints.

Staff author, send and analyze proposals. The client a proposal is
addressed to can accept, decline, sign and pay its deposit. View
tracking is public so the proposal page can report views without a
session.
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
from portal.backend.schemas.base import ApiResponse, JobAccepted
from portal.backend.schemas.proposal import (
    DepositPayment,
    DepositPaymentResult,
    ProposalAccept,
    ProposalAcceptResponse,
    ProposalAiEdit,
    ProposalAnalytics,
    ProposalCreate,
    ProposalDecline,
    ProposalListResponse,
    ProposalResponse,
    ProposalSign,
    ProposalUpdate,
    TrackViewResponse,
)
from portal.backend.services.proposal import ProposalService

router = APIRouter()


async def _get_visible(service: ProposalService, auth: AuthContext, proposal_id: str):
    """Load a proposal; clients only see the ones addressed to them."""
    proposal = await service.get_proposal(auth.require_org(), proposal_id)
    if auth.contact.role not in STAFF_ROLES and proposal.contact_id != auth.contact_id:
        raise NotFoundError(f"Proposal not found: {proposal_id}")
    return proposal


@router.get("", summary="List proposals (paginated)")
async def list_proposals(
    auth: CurrentAuth,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    status: str | None = Query(default=None),
    contact_id: str | None = Query(default=None),
) -> dict[str, Any]:
    if auth.contact.role not in STAFF_ROLES:
        contact_id = auth.contact_id

    proposals, total = await ProposalService(db).list_proposals(
        auth.require_org(),
        status=status,
        contact_id=contact_id,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return create_paginated_response(
        items=proposals,
        item_schema=ProposalListResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post(
    "",
    response_model=ApiResponse[ProposalResponse],
    status_code=201,
    summary="Create a proposal",
    description="Creates a draft. The total is the sum of quantity * unit_price over the line items.",
)
async def create_proposal(data: ProposalCreate, auth: StaffAuth, db: DbSession) -> ApiResponse[ProposalResponse]:
    proposal = await ProposalService(db).create_proposal(auth.require_org(), auth.contact_id, data)
    return ApiResponse(data=ProposalResponse.model_validate(proposal))


@router.get("/{proposal_id}", response_model=ApiResponse[ProposalResponse], summary="Get a proposal")
async def get_proposal(proposal_id: str, auth: CurrentAuth, db: DbSession) -> ApiResponse[ProposalResponse]:
    proposal = await _get_visible(ProposalService(db), auth, proposal_id)
    return ApiResponse(data=ProposalResponse.model_validate(proposal))


@router.patch("/{proposal_id}", response_model=ApiResponse[ProposalResponse], summary="Update a proposal")
async def update_proposal(
    proposal_id: str, data: ProposalUpdate, auth: StaffAuth, db: DbSession,
) -> ApiResponse[ProposalResponse]:
    proposal = await ProposalService(db).update_proposal(auth.require_org(), proposal_id, data)
    return ApiResponse(data=ProposalResponse.model_validate(proposal))


@router.delete("/{proposal_id}", status_code=204, summary="Delete a proposal")
async def delete_proposal(proposal_id: str, auth: StaffAuth, db: DbSession) -> None:
    await ProposalService(db).delete_proposal(auth.require_org(), proposal_id)


@router.post("/{proposal_id}/send", response_model=ApiResponse[ProposalResponse], summary="Send to the client")
async def send_proposal(proposal_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[ProposalResponse]:
    proposal = await ProposalService(db).send_proposal(auth.require_org(), proposal_id)
    return ApiResponse(data=ProposalResponse.model_validate(proposal))


@router.post(
    "/{proposal_id}/track-view",
    response_model=ApiResponse[TrackViewResponse],
    summary="Record a view",
    description="Public. Increments the view count and moves sent proposals to viewed.",
)
async def track_view(proposal_id: str, db: DbSession) -> ApiResponse[TrackViewResponse]:
    proposal = await ProposalService(db).track_view(proposal_id)
    return ApiResponse(data=TrackViewResponse(view_count=proposal.view_count, status=proposal.status))


@router.post(
    "/{proposal_id}/accept",
    response_model=ApiResponse[ProposalAcceptResponse],
    summary="Accept a proposal",
    description="Accepts the proposal and, unless create_project is false, opens an active project.",
)
async def accept_proposal(
    proposal_id: str, data: ProposalAccept, auth: CurrentAuth, db: DbSession,
) -> ApiResponse[ProposalAcceptResponse]:
    service = ProposalService(db)
    await _get_visible(service, auth, proposal_id)
    proposal, project = await service.accept_proposal(auth.require_org(), proposal_id, data)
    return ApiResponse(
        data=ProposalAcceptResponse(
            proposal=ProposalResponse.model_validate(proposal),
            project_id=project.id if project else None,
        )
    )


@router.post("/{proposal_id}/decline", response_model=ApiResponse[ProposalResponse], summary="Decline a proposal")
async def decline_proposal(
    proposal_id: str, data: ProposalDecline, auth: CurrentAuth, db: DbSession,
) -> ApiResponse[ProposalResponse]:
    service = ProposalService(db)
    await _get_visible(service, auth, proposal_id)
    proposal = await service.decline_proposal(auth.require_org(), proposal_id, data.reason)
    return ApiResponse(data=ProposalResponse.model_validate(proposal))


@router.post("/{proposal_id}/sign", response_model=ApiResponse[ProposalResponse], summary="E-sign a proposal")
async def sign_proposal(
    proposal_id: str, data: ProposalSign, auth: CurrentAuth, db: DbSession,
) -> ApiResponse[ProposalResponse]:
    service = ProposalService(db)
    await _get_visible(service, auth, proposal_id)
    proposal = await service.sign_proposal(auth.require_org(), proposal_id, data)
    return ApiResponse(data=ProposalResponse.model_validate(proposal))


@router.get("/{proposal_id}/analytics", response_model=ApiResponse[ProposalAnalytics], summary="View analytics")
async def get_analytics(proposal_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[ProposalAnalytics]:
    analytics = await ProposalService(db).get_analytics(auth.require_org(), proposal_id)
    return ApiResponse(data=ProposalAnalytics(**analytics))


@router.post(
    "/{proposal_id}/ai-edit",
    response_model=ApiResponse[JobAccepted],
    status_code=202,
    summary="Rewrite with AI",
    description="Queues a proposal_ai_edit background job. Poll /jobs/{job_id} for the outcome.",
)
async def request_ai_edit(
    proposal_id: str, data: ProposalAiEdit, auth: StaffAuth, db: DbSession,
) -> ApiResponse[JobAccepted]:
    job = await ProposalService(db).request_ai_edit(
        auth.require_org(), proposal_id, data.instructions, created_by=auth.contact_id,
    )
    return ApiResponse(data=JobAccepted(job_id=job.id, status=job.status))


@router.post(
    "/{proposal_id}/pay-deposit",
    response_model=ApiResponse[DepositPaymentResult],
    summary="Pay the deposit",
    description=(
        "Charges the card token through Square. The proposal must be signed or accepted. "
        "recorded is false when the charge went through but the proposal could not be updated."
    ),
)
async def pay_deposit(
    proposal_id: str, data: DepositPayment, auth: CurrentAuth, db: DbSession,
) -> ApiResponse[DepositPaymentResult]:
    service = ProposalService(db)
    await _get_visible(service, auth, proposal_id)
    result = await service.pay_deposit(auth.require_org(), proposal_id, data)
    return ApiResponse(data=DepositPaymentResult(**result))
