"""
Message API Endpoints.

Threaded messages between clients and admins. Mentioning @echo, or
writing to the assistant contact, brings Echo into the thread.
"""

from fastapi import APIRouter, Query

from portal.backend.core.dependencies import CurrentAuth, DbSession
from portal.backend.schemas.base import ApiResponse
from portal.backend.schemas.message import MessageCreate, MessageResponse, ThreadResponse, UnreadCount
from portal.backend.services.message import MessageService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[MessageResponse]], summary="List my threads")
async def list_threads(
    auth: CurrentAuth,
    db: DbSession,
    limit: int = Query(default=50, ge=1, le=200),
) -> ApiResponse[list[MessageResponse]]:
    threads = await MessageService(db).list_threads(auth.require_org(), auth.contact_id, limit=limit)
    return ApiResponse(data=[MessageResponse.model_validate(m) for m in threads])


@router.post(
    "",
    response_model=ApiResponse[MessageResponse],
    status_code=201,
    summary="Send a message",
    description="Starts a thread, or replies to one when parent_id is given.",
)
async def send_message(data: MessageCreate, auth: CurrentAuth, db: DbSession) -> ApiResponse[MessageResponse]:
    message = await MessageService(db).send_message(auth.require_org(), auth.contact, data)
    return ApiResponse(data=MessageResponse.model_validate(message))


@router.get("/unread-count", response_model=ApiResponse[UnreadCount], summary="Unread message count")
async def unread_count(auth: CurrentAuth, db: DbSession) -> ApiResponse[UnreadCount]:
    count = await MessageService(db).unread_count(auth.require_org(), auth.contact_id)
    return ApiResponse(data=UnreadCount(unread=count))


@router.get("/{message_id}", response_model=ApiResponse[ThreadResponse], summary="Get a thread")
async def get_thread(message_id: str, auth: CurrentAuth, db: DbSession) -> ApiResponse[ThreadResponse]:
    root, replies = await MessageService(db).get_thread(auth.require_org(), auth.contact_id, message_id)
    return ApiResponse(
        data=ThreadResponse(
            root=MessageResponse.model_validate(root),
            replies=[MessageResponse.model_validate(r) for r in replies],
        )
    )


@router.post("/{message_id}/read", response_model=ApiResponse[UnreadCount], summary="Mark a thread read")
async def mark_read(message_id: str, auth: CurrentAuth, db: DbSession) -> ApiResponse[UnreadCount]:
    service = MessageService(db)
    await service.mark_read(auth.require_org(), auth.contact_id, message_id)
    count = await service.unread_count(auth.require_org(), auth.contact_id)
    return ApiResponse(data=UnreadCount(unread=count))
