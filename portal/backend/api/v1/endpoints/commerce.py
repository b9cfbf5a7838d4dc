"""
Commerce API Endpoints.

Shopify store connections, product sync (as a background job) and
product search.
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
from portal.backend.schemas.commerce import ProductResponse, StoreConnect, StoreResponse, SyncLogResponse
from portal.backend.services.commerce import CommerceService

router = APIRouter()


@router.get("/stores", response_model=ApiResponse[list[StoreResponse]], summary="Connected stores")
async def list_stores(auth: StaffAuth, db: DbSession) -> ApiResponse[list[StoreResponse]]:
    stores = await CommerceService(db).list_stores(auth.require_org())
    return ApiResponse(data=[StoreResponse.model_validate(s) for s in stores])


@router.post(
    "/stores",
    response_model=ApiResponse[StoreResponse],
    status_code=201,
    summary="Connect a store",
    description="The access token is checked against Shopify before the store is saved.",
)
async def connect_store(data: StoreConnect, auth: StaffAuth, db: DbSession) -> ApiResponse[StoreResponse]:
    store = await CommerceService(db).connect_store(auth.require_org(), data)
    return ApiResponse(data=StoreResponse.model_validate(store))


@router.delete("/stores/{store_id}", response_model=ApiResponse[StoreResponse], summary="Disconnect a store")
async def deactivate_store(store_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[StoreResponse]:
    store = await CommerceService(db).deactivate_store(auth.require_org(), store_id)
    return ApiResponse(data=StoreResponse.model_validate(store))


@router.post(
    "/stores/{store_id}/sync",
    response_model=ApiResponse[JobAccepted],
    status_code=202,
    summary="Sync products",
)
async def sync_store(store_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[JobAccepted]:
    job = await CommerceService(db).request_sync(auth.require_org(), store_id, auth.contact_id)
    return ApiResponse(data=JobAccepted(job_id=job.id, status=job.status))


@router.get(
    "/stores/{store_id}/sync-log",
    response_model=ApiResponse[list[SyncLogResponse]],
    summary="Recent sync runs",
)
async def list_sync_logs(
    store_id: str,
    auth: StaffAuth,
    db: DbSession,
    limit: int = Query(default=10, ge=1, le=100),
) -> ApiResponse[list[SyncLogResponse]]:
    logs = await CommerceService(db).list_sync_logs(auth.require_org(), store_id, limit=limit)
    return ApiResponse(data=[SyncLogResponse.model_validate(entry) for entry in logs])


@router.get("/products", summary="Search synced products (paginated)")
async def search_products(
    auth: StaffAuth,
    db: DbSession,
    request_id: RequestId,
    store_id: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=100),
    pagination: PaginationParams = Depends(get_pagination_params),
) -> dict[str, Any]:
    products, total = await CommerceService(db).search_products(
        auth.require_org(), store_id=store_id, search=search, limit=pagination.limit, offset=pagination.offset,
    )
    return create_paginated_response(
        items=products,
        item_schema=ProductResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )
