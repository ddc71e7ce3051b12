"""Pydantic schemas for request/response validation."""
from chatsync.schemas.common import CamelModel, Page, PaginationMeta
from chatsync.schemas.conversation import (
    ConversationCreate,
    ConversationUpdate,
    ConversationQuery,
    ConversationResponse,
    ConversationStats,
    LastMessagePreview,
)
from chatsync.schemas.message import (
    AttachmentUpload,
    AttachmentResponse,
    MessageCreate,
    MessageQuery,
    MessageResponse,
)

__all__ = [
    "CamelModel",
    "Page",
    "PaginationMeta",
    "ConversationCreate",
    "ConversationUpdate",
    "ConversationQuery",
    "ConversationResponse",
    "ConversationStats",
    "LastMessagePreview",
    "AttachmentUpload",
    "AttachmentResponse",
    "MessageCreate",
    "MessageQuery",
    "MessageResponse",
]
