"""Provider discovery endpoint."""
from fastapi import APIRouter, Depends
from typing import List

from chatsync.api.deps import get_registry
from chatsync.middleware.auth import get_current_user
from chatsync.models.user import User
from chatsync.schemas.provider import ProviderInfo
from chatsync.services.provider_registry import ProviderRegistry

router = APIRouter()


@router.get("/providers", response_model=List[ProviderInfo])
async def list_providers(
    user: User = Depends(get_current_user),
    registry: ProviderRegistry = Depends(get_registry)
):
    """Registered providers with their models and current health."""
    return await registry.describe()
