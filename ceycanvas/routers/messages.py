from fastapi import APIRouter, Depends, HTTPException, Query, status
from starlette.concurrency import run_in_threadpool

from ceycanvas.routers.auth import get_current_user
from ceycanvas.schemas.common import StatusResponse
from ceycanvas.schemas.messages import (
    ConversationResponse,
    MessageResponse,
    SendMessageRequest,
)
from ceycanvas.schemas.users import UserResponse
from ceycanvas.services.messages import (
    ConversationAccessError,
    ConversationNotFoundError,
    message_store,
)
from ceycanvas.services.relay import emit_to_user

router = APIRouter(prefix="/messages", tags=["messages"])


def _conversation_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ConversationNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))


@router.get("/conversations", response_model=list[ConversationResponse])
def list_conversations(
    user: UserResponse = Depends(get_current_user),
) -> list[ConversationResponse]:
    return message_store.list_conversations(user.id)


@router.get("/search", response_model=list[ConversationResponse])
def search_conversations(
    query: str = Query(default=""), user: UserResponse = Depends(get_current_user)
) -> list[ConversationResponse]:
    if not query.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Search query required"
        )
    return message_store.search_conversations(user.id, query)


@router.get("/{conversation_id}", response_model=list[MessageResponse])
def get_messages(
    conversation_id: int, user: UserResponse = Depends(get_current_user)
) -> list[MessageResponse]:
    try:
        return message_store.get_messages(conversation_id, user.id)
    except (ConversationNotFoundError, ConversationAccessError) as exc:
        raise _conversation_error(exc) from exc


@router.put("/{conversation_id}/read", response_model=StatusResponse)
async def mark_as_read(
    conversation_id: int, user: UserResponse = Depends(get_current_user)
) -> StatusResponse:
    try:
        participant_ids = await run_in_threadpool(
            message_store.mark_read, conversation_id, user.id
        )
    except (ConversationNotFoundError, ConversationAccessError) as exc:
        raise _conversation_error(exc) from exc
    for participant_id in participant_ids:
        await emit_to_user(
            participant_id, "messagesRead", {"conversationId": conversation_id}
        )
    return StatusResponse(message="Messages marked as read")


@router.get("/{conversation_id}/search", response_model=list[MessageResponse])
def search_messages(
    conversation_id: int,
    query: str = Query(default=""),
    user: UserResponse = Depends(get_current_user),
) -> list[MessageResponse]:
    if not query.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Search query required"
        )
    try:
        return message_store.search_messages(conversation_id, user.id, query)
    except (ConversationNotFoundError, ConversationAccessError) as exc:
        raise _conversation_error(exc) from exc


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: SendMessageRequest, user: UserResponse = Depends(get_current_user)
) -> MessageResponse:
    try:
        return message_store.send_message(user.id, payload.recipient_id, payload.content)
    except ValueError as exc:
        detail = str(exc)
        status_code = (
            status.HTTP_404_NOT_FOUND
            if "not found" in detail.lower()
            else status.HTTP_400_BAD_REQUEST
        )
        raise HTTPException(status_code=status_code, detail=detail) from exc
