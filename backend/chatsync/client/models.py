"""Client-side records: unified views and local-store records."""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
import enum

from chatsync.schemas.message import AttachmentUpload


class Source(str, enum.Enum):
    """Which store a record came from."""
    BACKEND = "backend"
    LOCAL = "local"


class ChatMode(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class UnifiedAttachment(BaseModel):
    id: str
    name: str
    mime_type: str
    size: int
    url: Optional[str] = None
    path: Optional[str] = None


class UnifiedConversation(BaseModel):
    """Conversation view over both stores. Never persisted."""

    id: str
    title: str
    provider: Optional[str] = None
    model: str = "unknown"
    system_prompt: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    message_count: int = 0
    last_activity: datetime
    created_at: datetime
    updated_at: datetime
    is_active: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)
    last_message: Optional[str] = None
    source: Source


class UnifiedMessage(BaseModel):
    """Message view over both stores. Never persisted."""

    id: str
    conversation_id: str
    role: str
    content: str
    status: str = "sent"
    error: Optional[str] = None
    sequence_number: Optional[int] = None
    parent_message_id: Optional[str] = None
    attachments: List[UnifiedAttachment] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: Optional[datetime] = None
    source: Source


class CreateConversationAction(BaseModel):
    title: str
    provider: Optional[str] = None
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)


class SendMessageAction(BaseModel):
    conversation_id: str
    content: str
    parent_message_id: Optional[str] = None
    attachments: List[AttachmentUpload] = Field(default_factory=list)
    override_settings: Optional[Dict[str, Any]] = None


class LocalAttachment(BaseModel):
    id: str
    name: str
    type: str
    size: int
    path: str


class LocalSession(BaseModel):
    id: str
    name: str
    created_at: datetime
    updated_at: datetime
    message_count: int = 0


class LocalMessage(BaseModel):
    id: str
    session_id: str
    role: str
    content: str
    timestamp: datetime
    attachments: List[LocalAttachment] = Field(default_factory=list)
