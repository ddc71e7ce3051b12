"""Provider listing schemas."""
from typing import List

from chatsync.schemas.common import CamelModel
from chatsync.services.ai_provider import AIModel


class ProviderInfo(CamelModel):
    name: str
    models: List[AIModel]
    is_healthy: bool
