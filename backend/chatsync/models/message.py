"""Message model."""
from sqlalchemy import (
    Column, String, Integer, Text, DateTime, ForeignKey, JSON, UniqueConstraint, Enum as SQLEnum
)
from datetime import datetime
import uuid
import enum

from chatsync.database import Base


class MessageRole(str, enum.Enum):
    """Message role enum."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageStatus(str, enum.Enum):
    """Delivery state of a message."""
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not MessageStatus.PENDING


def generate_message_id() -> str:
    return f"msg_{uuid.uuid4()}"


class Message(Base):
    """Message in a conversation."""

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("conversation_id", "sequence_number", name="uq_messages_conversation_sequence"),
    )

    id = Column(String(64), primary_key=True, default=generate_message_id)
    conversation_id = Column(String(64), ForeignKey("conversations.id"), nullable=False, index=True)
    role = Column(SQLEnum(MessageRole), nullable=False)
    content = Column(Text, nullable=False)
    parent_message_id = Column(String(64))
    attachments = Column(JSON, default=list)  # [{id, name, mime_type, size, url}]

    status = Column(SQLEnum(MessageStatus), default=MessageStatus.SENT, nullable=False)
    error = Column(Text)
    sequence_number = Column(Integer, nullable=False)
    extra_data = Column(JSON, default=dict)  # tokens_used, processing_time_ms, provider, ...

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Message {self.id} role={self.role.value} status={self.status.value}>"
