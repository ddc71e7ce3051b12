"""Chat session - the state a chat UI binds to.

Keeps the conversation list, the active conversation's confirmed messages
and the optimistic buffer, and turns failures into a user-facing error.
"""
from typing import List, Optional

import structlog

from chatsync.client.models import (
    ChatMode,
    CreateConversationAction,
    SendMessageAction,
    UnifiedConversation,
    UnifiedMessage,
)
from chatsync.client.optimistic import OptimisticMessageBuffer
from chatsync.client.unified import UnifiedChatService
from chatsync.errors import ChatSyncError

logger = structlog.get_logger()


def describe_error(error: Exception) -> str:
    if isinstance(error, ChatSyncError):
        return error.message
    return "Something went wrong. Please try again."


class ChatSession:
    """Conversation list, active conversation and optimistic sends."""

    def __init__(self, service: UnifiedChatService):
        self.service = service
        self.buffer = OptimisticMessageBuffer()
        self.conversations: List[UnifiedConversation] = []
        self.active_conversation_id: Optional[str] = None
        self.messages: List[UnifiedMessage] = []
        self.error: Optional[str] = None
        self.is_loading = False
        self.is_sending = False

    @property
    def mode(self) -> ChatMode:
        return self.service.mode

    @property
    def active_conversation(self) -> Optional[UnifiedConversation]:
        return next((c for c in self.conversations if c.id == self.active_conversation_id), None)

    @property
    def visible_messages(self) -> List[UnifiedMessage]:
        """Confirmed messages followed by in-flight synthetic ones."""
        if self.active_conversation_id is None:
            return []
        return self.messages + self.buffer.pending_for(self.active_conversation_id)

    def clear_error(self) -> None:
        self.error = None

    async def initialize(self) -> None:
        """Load conversations and select the most recent one."""
        await self.service.initialize()
        await self.refresh_conversations()
        if self.conversations and self.active_conversation_id is None:
            await self.select_conversation(self.conversations[0].id)

    async def refresh_conversations(self) -> List[UnifiedConversation]:
        self.is_loading = True
        try:
            self.conversations = await self.service.list_conversations()
            return self.conversations
        except ChatSyncError as e:
            self.error = describe_error(e)
            raise
        finally:
            self.is_loading = False

    async def create_conversation(self, action: CreateConversationAction) -> UnifiedConversation:
        try:
            conversation = await self.service.create_conversation(action)
        except ChatSyncError as e:
            self.error = describe_error(e)
            raise

        self.conversations.insert(0, conversation)
        await self.select_conversation(conversation.id)
        return conversation

    async def select_conversation(self, conversation_id: str) -> None:
        self.active_conversation_id = conversation_id
        self.messages = []
        await self.refresh_messages()

    async def delete_conversation(self, conversation_id: str) -> None:
        try:
            await self.service.delete_conversation(conversation_id)
        except ChatSyncError as e:
            self.error = describe_error(e)
            raise

        self.conversations = [c for c in self.conversations if c.id != conversation_id]
        self.buffer.clear(conversation_id)
        if self.active_conversation_id == conversation_id:
            self.active_conversation_id = None
            self.messages = []
            if self.conversations:
                await self.select_conversation(self.conversations[0].id)

    async def refresh_messages(self) -> List[UnifiedMessage]:
        if self.active_conversation_id is None:
            return []

        self.is_loading = True
        try:
            self.messages = await self.service.get_messages(self.active_conversation_id)
            return self.messages
        except ChatSyncError as e:
            self.error = describe_error(e)
            raise
        finally:
            self.is_loading = False

    async def send_message(self, content: str, **options) -> UnifiedMessage:
        """
        Send to the active conversation with an optimistic user message.

        On success the full message list is re-fetched from the
        authoritative store. On failure the synthetic entry is removed, the
        error is recorded and re-raised. The synthetic entry never outlives
        the call.
        """
        if self.active_conversation_id is None:
            raise ValueError("No active conversation")

        conversation_id = self.active_conversation_id
        optimistic = self.buffer.add(conversation_id, content)
        self.is_sending = True
        self.error = None

        try:
            sent = await self.service.send_message(
                SendMessageAction(conversation_id=conversation_id, content=content, **options)
            )
        except Exception as e:
            self.buffer.remove(optimistic.id)
            self.error = describe_error(e)
            logger.warning("send_failed", conversation_id=conversation_id, error=str(e))
            self.is_sending = False
            # A provider failure is still recorded server-side; show it
            if self.active_conversation_id == conversation_id:
                await self._refresh_quietly()
            raise

        try:
            if self.active_conversation_id == conversation_id:
                await self.refresh_messages()
        except ChatSyncError as e:
            logger.warning("refresh_after_send_failed", conversation_id=conversation_id, error=str(e))
            self.messages.append(self.buffer.replace(optimistic.id, sent))
        finally:
            self.buffer.remove(optimistic.id)
            self.is_sending = False

        return sent

    async def search_messages(self, query: str) -> List[UnifiedMessage]:
        if self.active_conversation_id is None:
            return []
        return await self.service.search_messages(self.active_conversation_id, query)

    async def switch_to_online(self) -> bool:
        online = await self.service.switch_to_online()
        if online:
            await self.refresh_conversations()
        return online

    async def switch_to_offline(self) -> None:
        self.service.switch_to_offline()
        await self.refresh_conversations()

    async def _refresh_quietly(self) -> None:
        error = self.error
        try:
            await self.refresh_messages()
        except ChatSyncError as e:
            logger.info("refresh_after_failure_skipped", error=str(e))
        self.error = error
