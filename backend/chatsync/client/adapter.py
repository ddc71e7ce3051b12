"""Source adapter: stateless mapping between store records and unified views."""
from typing import Optional

from chatsync.client.models import (
    CreateConversationAction,
    LocalMessage,
    LocalSession,
    SendMessageAction,
    Source,
    UnifiedAttachment,
    UnifiedConversation,
    UnifiedMessage,
)
from chatsync.schemas.conversation import ConversationCreate, ConversationResponse
from chatsync.schemas.message import MessageCreate, MessageResponse

UNKNOWN_MODEL = "unknown"


def conversation_from_backend(record: ConversationResponse) -> UnifiedConversation:
    return UnifiedConversation(
        id=record.id,
        title=record.title,
        provider=record.provider,
        model=record.model,
        system_prompt=record.system_prompt,
        settings=dict(record.settings),
        message_count=record.message_count,
        last_activity=record.last_activity,
        created_at=record.created_at,
        updated_at=record.updated_at,
        is_active=record.is_active,
        metadata=dict(record.metadata),
        last_message=record.last_message.content if record.last_message else None,
        source=Source.BACKEND,
    )


def conversation_from_local(session: LocalSession, provider: Optional[str] = None) -> UnifiedConversation:
    """Local sessions carry no model information."""
    return UnifiedConversation(
        id=session.id,
        title=session.name,
        provider=provider,
        model=UNKNOWN_MODEL,
        message_count=session.message_count,
        last_activity=session.updated_at,
        created_at=session.created_at,
        updated_at=session.updated_at,
        is_active=True,
        source=Source.LOCAL,
    )


def message_from_backend(record: MessageResponse) -> UnifiedMessage:
    return UnifiedMessage(
        id=record.id,
        conversation_id=record.conversation_id,
        role=record.role.value,
        content=record.content,
        status=record.status.value,
        error=record.error,
        sequence_number=record.sequence_number,
        parent_message_id=record.parent_message_id,
        attachments=[
            UnifiedAttachment(
                id=a.id,
                name=a.name,
                mime_type=a.mime_type,
                size=a.size,
                url=a.url,
            )
            for a in record.attachments
        ],
        metadata=dict(record.metadata),
        created_at=record.created_at,
        updated_at=record.updated_at,
        source=Source.BACKEND,
    )


def message_from_local(message: LocalMessage, sequence_number: Optional[int] = None) -> UnifiedMessage:
    """Local messages are stored only once written, so they are always sent."""
    return UnifiedMessage(
        id=message.id,
        conversation_id=message.session_id,
        role=message.role,
        content=message.content,
        status="sent",
        sequence_number=sequence_number,
        attachments=[
            UnifiedAttachment(
                id=a.id,
                name=a.name,
                mime_type=a.type,
                size=a.size,
                path=a.path,
            )
            for a in message.attachments
        ],
        created_at=message.timestamp,
        updated_at=message.timestamp,
        source=Source.LOCAL,
    )


def create_request(action: CreateConversationAction, default_provider: str, default_model: str) -> ConversationCreate:
    return ConversationCreate(
        title=action.title,
        provider=action.provider or default_provider,
        model=action.model or default_model,
        system_prompt=action.system_prompt,
        settings=dict(action.settings),
    )


def send_request(action: SendMessageAction) -> MessageCreate:
    return MessageCreate(
        content=action.content,
        parent_message_id=action.parent_message_id,
        attachments=list(action.attachments),
        override_settings=action.override_settings,
    )
