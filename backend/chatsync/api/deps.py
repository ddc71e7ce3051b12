"""Shared FastAPI dependencies."""
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from typing import Optional

from chatsync.database import get_db
from chatsync.services.chat import ChatService
from chatsync.services.dispatch_guard import DispatchGuard
from chatsync.services.provider_registry import ProviderRegistry


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_dispatch_guard(request: Request) -> Optional[DispatchGuard]:
    return getattr(request.app.state, "dispatch_guard", None)


def get_chat_service(
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    guard: Optional[DispatchGuard] = Depends(get_dispatch_guard),
) -> ChatService:
    return ChatService(db, registry, guard)
