"""Message request/response schemas."""
from pydantic import AliasChoices, Field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

from chatsync.models.message import MessageRole, MessageStatus
from chatsync.schemas.common import CamelModel


class AttachmentUpload(CamelModel):
    """Inline attachment sent with a message (base64 payload)."""

    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., description="MIME type")
    size: int = Field(..., ge=0)
    data: str = Field(..., description="Base64 encoded file content")


class AttachmentResponse(CamelModel):
    id: str
    name: str
    mime_type: str
    size: int
    url: str


class MessageCreate(CamelModel):
    """Request to send a user message."""

    content: str = Field(..., min_length=1, max_length=100000)
    parent_message_id: Optional[str] = None
    attachments: List[AttachmentUpload] = Field(default_factory=list)
    override_settings: Optional[Dict[str, Any]] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "content": "What should I pack for Lisbon in May?",
                "overrideSettings": {"temperature": 0.3}
            }
        }
    }


class MessageQuery(CamelModel):
    """Listing parameters."""

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    search: Optional[str] = None
    sort_by: Literal["sequenceNumber", "createdAt", "updatedAt"] = "sequenceNumber"
    sort_order: Literal["asc", "desc"] = "asc"


class MessageResponse(CamelModel):
    """Message as returned by the API."""

    id: str
    conversation_id: str
    role: MessageRole
    content: str
    parent_message_id: Optional[str] = None
    attachments: List[AttachmentResponse] = Field(default_factory=list)
    status: MessageStatus
    error: Optional[str] = None
    sequence_number: int
    created_at: datetime
    updated_at: datetime
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("extra_data", "metadata"),
    )
