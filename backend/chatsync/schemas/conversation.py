"""Conversation request/response schemas."""
from pydantic import AliasChoices, Field
from typing import Any, Dict, Literal, Optional
from datetime import datetime

from chatsync.schemas.common import CamelModel


class ConversationCreate(CamelModel):
    """Request to create a conversation."""

    title: str = Field(..., min_length=1, max_length=255)
    provider: str = Field(..., min_length=1, max_length=50)
    model: str = Field(..., min_length=1, max_length=100)
    system_prompt: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Trip planning",
                "provider": "ollama",
                "model": "llama3",
                "systemPrompt": "You are a concise travel assistant.",
                "settings": {"temperature": 0.7}
            }
        }
    }


class ConversationUpdate(CamelModel):
    """Partial update. Omitted fields are left untouched."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    provider: Optional[str] = Field(None, min_length=1, max_length=50)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    system_prompt: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class ConversationQuery(CamelModel):
    """Listing parameters."""

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    search: Optional[str] = None
    sort_by: Literal["createdAt", "updatedAt", "lastActivity", "title"] = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"


class LastMessagePreview(CamelModel):
    content: str
    role: str
    created_at: datetime


class ConversationResponse(CamelModel):
    """Conversation as returned by the API."""

    id: str
    user_id: str
    title: str
    provider: str
    model: str
    system_prompt: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    message_count: int = 0
    last_activity: datetime
    created_at: datetime
    updated_at: datetime
    is_active: bool = True
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("extra_data", "metadata"),
    )
    last_message: Optional[LastMessagePreview] = None


class ConversationStats(CamelModel):
    message_count: int
    tokens_used: int
    average_response_time: float
    last_activity: datetime
