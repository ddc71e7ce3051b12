"""Conversation model."""
from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from chatsync.database import Base


def generate_conversation_id() -> str:
    return f"conv_{uuid.uuid4()}"


class Conversation(Base):
    """Conversation owned by a single user.

    Messages are not cascaded at the database level; ChatService deletes
    them before the conversation row.
    """

    __tablename__ = "conversations"

    id = Column(String(64), primary_key=True, default=generate_conversation_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    provider = Column(String(50), nullable=False)
    model = Column(String(100), nullable=False)
    system_prompt = Column(Text)
    settings = Column(JSON, default=dict)  # temperature, max_tokens, top_p, ...

    message_count = Column(Integer, default=0, nullable=False)
    last_activity = Column(DateTime, default=datetime.utcnow, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    extra_data = Column(JSON, default=dict)  # exposed as "metadata"

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="conversations")
    messages = relationship("Message", viewonly=True, order_by="Message.sequence_number")

    def __repr__(self):
        return f"<Conversation {self.id} title={self.title!r}>"
