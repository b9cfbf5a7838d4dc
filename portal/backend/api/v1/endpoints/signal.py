"""
Signal API Endpoints.

Configuration of the Echo assistant and direct chat with it.
"""

from fastapi import APIRouter

from portal.backend.core.dependencies import AdminAuth, CurrentAuth, DbSession
from portal.backend.schemas.base import ApiResponse
from portal.backend.schemas.signal import (
    ChatRequest,
    ChatResponse,
    ConversationDetail,
    ConversationRating,
    ConversationResponse,
    SignalConfigResponse,
    SignalConfigUpdate,
    SignalMessageResponse,
)
from portal.backend.services.signal import SignalService

router = APIRouter()


@router.get("/config", response_model=ApiResponse[SignalConfigResponse], summary="Assistant configuration")
async def get_config(auth: CurrentAuth, db: DbSession) -> ApiResponse[SignalConfigResponse]:
    config = await SignalService(db).get_config(auth.require_org())
    return ApiResponse(data=SignalConfigResponse.model_validate(config))


@router.put("/config", response_model=ApiResponse[SignalConfigResponse], summary="Update assistant configuration")
async def update_config(
    data: SignalConfigUpdate, auth: AdminAuth, db: DbSession,
) -> ApiResponse[SignalConfigResponse]:
    config = await SignalService(db).update_config(auth.require_org(), data)
    return ApiResponse(data=SignalConfigResponse.model_validate(config))


@router.post(
    "/echo/chat",
    response_model=ApiResponse[ChatResponse],
    summary="Chat with Echo",
    description="Starts a conversation, or continues one when conversation_id is given. 403 when disabled.",
)
async def chat(data: ChatRequest, auth: CurrentAuth, db: DbSession) -> ApiResponse[ChatResponse]:
    conversation, reply = await SignalService(db).chat(
        auth.require_org(), auth.contact, data.message, data.conversation_id,
    )
    return ApiResponse(
        data=ChatResponse(
            conversation_id=conversation.id,
            reply=SignalMessageResponse.model_validate(reply),
        )
    )


@router.get("/conversations", response_model=ApiResponse[list[ConversationResponse]], summary="My conversations")
async def list_conversations(auth: CurrentAuth, db: DbSession) -> ApiResponse[list[ConversationResponse]]:
    conversations = await SignalService(db).list_conversations(auth.require_org(), auth.contact_id)
    return ApiResponse(data=[ConversationResponse.model_validate(c) for c in conversations])


@router.get(
    "/conversations/{conversation_id}",
    response_model=ApiResponse[ConversationDetail],
    summary="Get a conversation",
)
async def get_conversation(
    conversation_id: str, auth: CurrentAuth, db: DbSession,
) -> ApiResponse[ConversationDetail]:
    conversation, messages = await SignalService(db).get_conversation(
        auth.require_org(), auth.contact_id, conversation_id,
    )
    return ApiResponse(
        data=ConversationDetail(
            **ConversationResponse.model_validate(conversation).model_dump(),
            messages=[SignalMessageResponse.model_validate(m) for m in messages],
        )
    )


@router.post(
    "/conversations/{conversation_id}/rate",
    response_model=ApiResponse[ConversationResponse],
    summary="Rate a conversation",
)
async def rate_conversation(
    conversation_id: str, data: ConversationRating, auth: CurrentAuth, db: DbSession,
) -> ApiResponse[ConversationResponse]:
    conversation = await SignalService(db).rate_conversation(
        auth.require_org(), auth.contact_id, conversation_id, data.rating,
    )
    return ApiResponse(data=ConversationResponse.model_validate(conversation))
