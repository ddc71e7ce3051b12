"""Client-side sync engine: unified access to the server and a local store."""
from chatsync.client.arbiter import ModeArbiter
from chatsync.client.key_value import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from chatsync.client.local_store import LocalChatStore
from chatsync.client.models import (
    ChatMode,
    CreateConversationAction,
    SendMessageAction,
    Source,
    UnifiedConversation,
    UnifiedMessage,
)
from chatsync.client.optimistic import OptimisticMessageBuffer
from chatsync.client.remote import RemoteChatClient
from chatsync.client.session import ChatSession
from chatsync.client.unified import UnifiedChatService

__all__ = [
    "ModeArbiter",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "LocalChatStore",
    "ChatMode",
    "CreateConversationAction",
    "SendMessageAction",
    "Source",
    "UnifiedConversation",
    "UnifiedMessage",
    "OptimisticMessageBuffer",
    "RemoteChatClient",
    "ChatSession",
    "UnifiedChatService",
]
