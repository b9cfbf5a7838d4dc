"""
Invoice API Endpoints.

Admins create, send and manage invoices. Clients list and pay their
own. The magic-link routes (by-token, pay-public) are public: the
payment token itself is the credential.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from portal.backend.core.dependencies import AdminAuth, AuthContext, CurrentAuth, DbSession, RequestId
from portal.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from portal.backend.schemas.base import ApiResponse
from portal.backend.schemas.invoice import (
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceUpdate,
    PaymentRequest,
    PaymentResult,
    PublicInvoiceResponse,
    PublicPaymentRequest,
    RecurringRunResult,
)
from portal.backend.services.invoice import InvoiceService

router = APIRouter()


def _client_scope(auth: AuthContext) -> str | None:
    """Contact id that restricts a client to their own invoices."""
    return auth.contact_id if auth.contact.role == "client" else None


# =============================================================================
# Public magic-link routes
# =============================================================================


@router.get(
    "/by-token/{token}",
    response_model=ApiResponse[PublicInvoiceResponse],
    summary="View an invoice by payment token",
    description="Public. 404 for an unknown token, 410 once the link has expired.",
)
async def get_by_token(token: str, db: DbSession) -> ApiResponse[PublicInvoiceResponse]:
    invoice = await InvoiceService(db).get_public_invoice(token)
    return ApiResponse(data=PublicInvoiceResponse(**invoice))


@router.post(
    "/pay-public",
    response_model=ApiResponse[PaymentResult],
    summary="Pay an invoice by payment token",
    description="Public. Charges the card token through Square.",
)
async def pay_public(data: PublicPaymentRequest, db: DbSession) -> ApiResponse[PaymentResult]:
    result = await InvoiceService(db).pay_public(data.token, data.source_id)
    return ApiResponse(data=PaymentResult(**result))


# =============================================================================
# Authenticated routes
# =============================================================================


@router.get("", summary="List invoices (paginated)")
async def list_invoices(
    auth: CurrentAuth,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    status: str | None = Query(default=None),
    contact_id: str | None = Query(default=None),
) -> dict[str, Any]:
    invoices, total = await InvoiceService(db).list_invoices(
        auth.require_org(),
        status=status,
        contact_id=contact_id,
        client_contact_id=_client_scope(auth),
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return create_paginated_response(
        items=invoices,
        item_schema=InvoiceListResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post(
    "",
    response_model=ApiResponse[InvoiceResponse],
    status_code=201,
    summary="Create an invoice",
    description="Numbers the invoice, computes tax and total, and emails the payment link unless send is false.",
)
async def create_invoice(data: InvoiceCreate, auth: AdminAuth, db: DbSession) -> ApiResponse[InvoiceResponse]:
    invoice = await InvoiceService(db).create_invoice(auth.require_org(), data)
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.post(
    "/generate-recurring",
    response_model=ApiResponse[RecurringRunResult],
    summary="Generate due recurring invoices",
    description="Runs the same pass as the daily scheduled task.",
)
async def generate_recurring(auth: AdminAuth, db: DbSession) -> ApiResponse[RecurringRunResult]:
    invoices = await InvoiceService(db).generate_recurring()
    return ApiResponse(
        data=RecurringRunResult(generated=len(invoices), invoice_ids=[i.id for i in invoices])
    )


@router.get("/{invoice_id}", response_model=ApiResponse[InvoiceResponse], summary="Get an invoice")
async def get_invoice(invoice_id: str, auth: CurrentAuth, db: DbSession) -> ApiResponse[InvoiceResponse]:
    invoice = await InvoiceService(db).get_invoice(
        auth.require_org(), invoice_id, client_contact_id=_client_scope(auth),
    )
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.patch("/{invoice_id}", response_model=ApiResponse[InvoiceResponse], summary="Update an invoice")
async def update_invoice(
    invoice_id: str, data: InvoiceUpdate, auth: AdminAuth, db: DbSession,
) -> ApiResponse[InvoiceResponse]:
    invoice = await InvoiceService(db).update_invoice(auth.require_org(), invoice_id, data)
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.delete("/{invoice_id}", status_code=204, summary="Delete an invoice")
async def delete_invoice(invoice_id: str, auth: AdminAuth, db: DbSession) -> None:
    await InvoiceService(db).delete_invoice(auth.require_org(), invoice_id)


@router.post("/{invoice_id}/send", response_model=ApiResponse[InvoiceResponse], summary="Email the payment link")
async def send_invoice(invoice_id: str, auth: AdminAuth, db: DbSession) -> ApiResponse[InvoiceResponse]:
    invoice = await InvoiceService(db).send_invoice(auth.require_org(), invoice_id)
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.post("/{invoice_id}/remind", response_model=ApiResponse[InvoiceResponse], summary="Send a reminder")
async def send_reminder(invoice_id: str, auth: AdminAuth, db: DbSession) -> ApiResponse[InvoiceResponse]:
    invoice = await InvoiceService(db).send_reminder(auth.require_org(), invoice_id)
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.post(
    "/{invoice_id}/pay",
    response_model=ApiResponse[PaymentResult],
    summary="Pay an invoice",
    description="Charges the card token through Square. Rate limited per contact.",
)
async def pay_invoice(
    invoice_id: str, data: PaymentRequest, auth: CurrentAuth, db: DbSession,
) -> ApiResponse[PaymentResult]:
    result = await InvoiceService(db).pay(auth.require_org(), invoice_id, auth.contact, data.source_id)
    return ApiResponse(data=PaymentResult(**result))
