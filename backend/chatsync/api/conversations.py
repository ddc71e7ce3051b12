"""Conversation endpoints."""
from fastapi import APIRouter, Depends, Query, Response
from typing import Literal, Optional

from chatsync.api.deps import get_chat_service
from chatsync.middleware.auth import get_current_user
from chatsync.models.user import User
from chatsync.schemas.common import Page
from chatsync.schemas.conversation import (
    ConversationCreate,
    ConversationQuery,
    ConversationResponse,
    ConversationStats,
    ConversationUpdate,
)
from chatsync.services.chat import ChatService

router = APIRouter(prefix="/conversations")


@router.post("", response_model=ConversationResponse, status_code=201)
async def create_conversation(
    data: ConversationCreate,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    """Create a conversation bound to a provider and model."""
    return await service.create_conversation(user.id, data)


@router.get("", response_model=Page[ConversationResponse])
def list_conversations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    sort_by: Literal["createdAt", "updatedAt", "lastActivity", "title"] = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    """List the caller's conversations with a last-message preview."""
    query = ConversationQuery(page=page, limit=limit, search=search, sort_by=sort_by, sort_order=sort_order)
    result = service.list_conversations(user.id, query)
    return Page[ConversationResponse](
        data=[ConversationResponse.model_validate(c) for c in result.data],
        pagination=result.pagination,
    )


@router.get("/{conversation_id}", response_model=ConversationResponse)
def get_conversation(
    conversation_id: str,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    return service.get_conversation(conversation_id, user.id)


@router.patch("/{conversation_id}", response_model=ConversationResponse)
async def update_conversation(
    conversation_id: str,
    data: ConversationUpdate,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    return await service.update_conversation(conversation_id, user.id, data)


@router.delete("/{conversation_id}", status_code=204)
def delete_conversation(
    conversation_id: str,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    """Delete a conversation together with all of its messages."""
    service.delete_conversation(conversation_id, user.id)
    return Response(status_code=204)


@router.get("/{conversation_id}/stats", response_model=ConversationStats)
def get_conversation_stats(
    conversation_id: str,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    return service.get_stats(conversation_id, user.id)
