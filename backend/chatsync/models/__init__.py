"""Database models."""
from chatsync.models.user import User
from chatsync.models.conversation import Conversation
from chatsync.models.message import Message, MessageRole, MessageStatus

__all__ = ["User", "Conversation", "Message", "MessageRole", "MessageStatus"]
