"""Message endpoints.

Sending runs the full AI round trip before responding. The response is the
recorded user message; clients re-fetch the message list to see the
assistant reply (sent or failed).
"""
from fastapi import APIRouter, Depends, Query
from typing import List, Literal, Optional

from chatsync.api.deps import get_chat_service
from chatsync.middleware.auth import get_current_user
from chatsync.middleware.logging import get_logger
from chatsync.models.user import User
from chatsync.schemas.common import Page
from chatsync.schemas.message import MessageCreate, MessageQuery, MessageResponse
from chatsync.services.chat import ChatService

router = APIRouter(prefix="/conversations/{conversation_id}/messages")
logger = get_logger()


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: str,
    data: MessageCreate,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    """
    Send a user message and wait for the assistant reply.

    A provider failure is recorded as a failed assistant message and
    reported with status 503.
    """
    logger.info(
        "send_message_received",
        conversation_id=conversation_id,
        user_id=user.id,
        message_length=len(data.content),
        attachment_count=len(data.attachments)
    )
    return await service.send_message(conversation_id, user.id, data)


@router.get("", response_model=Page[MessageResponse])
def list_messages(
    conversation_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    sort_by: Literal["sequenceNumber", "createdAt", "updatedAt"] = Query("sequenceNumber", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("asc", alias="sortOrder"),
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    query = MessageQuery(page=page, limit=limit, search=search, sort_by=sort_by, sort_order=sort_order)
    result = service.get_messages(conversation_id, user.id, query)
    return Page[MessageResponse](
        data=[MessageResponse.model_validate(m) for m in result.data],
        pagination=result.pagination,
    )


@router.get("/search", response_model=List[MessageResponse])
def search_messages(
    conversation_id: str,
    q: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    """Case-insensitive substring search over message content."""
    return service.search_messages(conversation_id, user.id, q)
