"""Unified chat service - one API over the backend and the local store.

List and create follow the current mode and fall back to the local store
when the backend is unavailable. Reads, deletes and sends on an existing
conversation follow the store the conversation came from.
"""
from typing import Callable, Dict, List, Optional

import structlog

from chatsync.client import adapter
from chatsync.client.arbiter import ModeArbiter, always_reachable
from chatsync.client.config import ClientSettings, get_client_settings
from chatsync.client.key_value import JsonFileKeyValueStore
from chatsync.client.local_store import LocalChatStore
from chatsync.client.models import (
    ChatMode,
    CreateConversationAction,
    SendMessageAction,
    Source,
    UnifiedConversation,
    UnifiedMessage,
)
from chatsync.client.remote import RemoteChatClient
from chatsync.errors import (
    ChatSyncError,
    ConnectivityError,
    NotFoundError,
    UnsupportedOperationError,
)
from chatsync.schemas.provider import ProviderInfo

logger = structlog.get_logger()


def is_availability_failure(error: ChatSyncError) -> bool:
    """Server-side or transport failures, as opposed to rejected input."""
    return error.status_code >= 500 and not isinstance(error, UnsupportedOperationError)


class UnifiedChatService:
    """Routes chat operations to the authoritative store."""

    def __init__(
        self,
        remote: RemoteChatClient,
        local: LocalChatStore,
        arbiter: Optional[ModeArbiter] = None,
        default_provider: str = "mock",
        default_model: str = "mock-echo",
        page_size: int = 100,
    ):
        self.remote = remote
        self.local = local
        self.arbiter = arbiter or ModeArbiter(
            is_authenticated=lambda: remote.is_authenticated,
            health_check=remote.health_check,
        )
        self.default_provider = default_provider
        self.default_model = default_model
        self.page_size = page_size
        self._sources: Dict[str, Source] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Optional[ClientSettings] = None,
        network_probe: Callable[[], bool] = always_reachable,
    ) -> "UnifiedChatService":
        settings = settings or get_client_settings()
        remote = RemoteChatClient(
            settings.server_url,
            api_key=settings.api_key,
            timeout=settings.request_timeout_seconds,
            send_timeout=settings.send_timeout_seconds,
            health_timeout=settings.health_check_timeout_seconds,
        )
        local = LocalChatStore(JsonFileKeyValueStore(settings.local_store_path))
        arbiter = ModeArbiter(
            is_authenticated=lambda: remote.is_authenticated,
            network_probe=network_probe,
            health_check=remote.health_check,
        )
        return cls(
            remote,
            local,
            arbiter,
            default_provider=settings.default_provider,
            default_model=settings.default_model,
            page_size=settings.page_size,
        )

    @property
    def mode(self) -> ChatMode:
        return self.arbiter.mode

    async def initialize(self) -> ChatMode:
        await self.local.initialize()
        return self.arbiter.refresh()

    async def close(self) -> None:
        await self.remote.close()

    # Conversations

    async def list_conversations(self) -> List[UnifiedConversation]:
        """Backend conversations when online; local sessions otherwise or on failure."""
        if self.arbiter.refresh() == ChatMode.ONLINE:
            try:
                page = await self.remote.list_conversations(page=1, limit=self.page_size)
                return self._remember([adapter.conversation_from_backend(c) for c in page.data])
            except ChatSyncError as e:
                if not is_availability_failure(e):
                    raise
                self.arbiter.mark_remote_failure(e)

        sessions = await self.local.get_sessions()
        return self._remember([
            adapter.conversation_from_local(s, self.default_provider) for s in sessions
        ])

    async def get_conversation(self, conversation_id: str) -> Optional[UnifiedConversation]:
        source = await self._source_of(conversation_id)
        if source == Source.LOCAL:
            session = await self.local.get_session(conversation_id)
            if session is None:
                return None
            return adapter.conversation_from_local(session, self.default_provider)

        try:
            record = await self.remote.get_conversation(conversation_id)
        except NotFoundError:
            return None
        return self._remember([adapter.conversation_from_backend(record)])[0]

    async def create_conversation(self, action: CreateConversationAction) -> UnifiedConversation:
        if self.arbiter.refresh() == ChatMode.ONLINE:
            request = adapter.create_request(action, self.default_provider, self.default_model)
            try:
                record = await self.remote.create_conversation(request)
                return self._remember([adapter.conversation_from_backend(record)])[0]
            except ChatSyncError as e:
                if not is_availability_failure(e):
                    raise
                self.arbiter.mark_remote_failure(e)

        session = await self.local.create_session(action.title)
        return self._remember([adapter.conversation_from_local(session, self.default_provider)])[0]

    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete in the conversation's own store, whatever the current mode."""
        source = await self._source_of(conversation_id)
        if source == Source.LOCAL:
            await self.local.delete_session(conversation_id)
        else:
            await self.remote.delete_conversation(conversation_id)

        self._sources.pop(conversation_id, None)
        logger.info("conversation_deleted", conversation_id=conversation_id, source=source.value)

    # Messages

    async def _numbered_local_messages(self, conversation_id: str) -> List[UnifiedMessage]:
        messages = await self.local.get_messages(conversation_id)
        return [
            adapter.message_from_local(m, sequence_number=index)
            for index, m in enumerate(messages, start=1)
        ]

    async def get_messages(self, conversation_id: str) -> List[UnifiedMessage]:
        source = await self._source_of(conversation_id)
        if source == Source.LOCAL:
            return await self._numbered_local_messages(conversation_id)

        records = await self.remote.get_all_messages(conversation_id, page_size=self.page_size)
        return [adapter.message_from_backend(r) for r in records]

    async def search_messages(self, conversation_id: str, query: str) -> List[UnifiedMessage]:
        source = await self._source_of(conversation_id)
        if source == Source.LOCAL:
            # Matches keep the position they have in the full history
            matched = {m.id for m in await self.local.search_messages(conversation_id, query)}
            return [m for m in await self._numbered_local_messages(conversation_id) if m.id in matched]

        records = await self.remote.search_messages(conversation_id, query)
        return [adapter.message_from_backend(r) for r in records]

    async def send_message(self, action: SendMessageAction) -> UnifiedMessage:
        """
        Send a message through the backend AI round trip.

        Raises:
            UnsupportedOperationError: The conversation only exists locally
            ConnectivityError: The backend is not reachable
        """
        source = await self._source_of(action.conversation_id)
        if source == Source.LOCAL:
            raise UnsupportedOperationError(
                "AI replies are not available for local conversations",
                {"conversation_id": action.conversation_id}
            )
        if self.arbiter.refresh() != ChatMode.ONLINE:
            raise ConnectivityError(
                "Sending a message requires a connection to the server",
                {"conversation_id": action.conversation_id}
            )

        try:
            record = await self.remote.send_message(action.conversation_id, adapter.send_request(action))
        except ConnectivityError as e:
            self.arbiter.mark_remote_failure(e)
            raise
        return adapter.message_from_backend(record)

    # Providers and mode

    async def get_available_providers(self) -> List[ProviderInfo]:
        if self.arbiter.refresh() != ChatMode.ONLINE:
            return []
        try:
            return await self.remote.get_providers()
        except ChatSyncError as e:
            if not is_availability_failure(e):
                raise
            self.arbiter.mark_remote_failure(e)
            return []

    async def switch_to_online(self) -> bool:
        return await self.arbiter.switch_to_online()

    def switch_to_offline(self) -> None:
        self.arbiter.switch_to_offline()

    def status_info(self) -> Dict[str, object]:
        self.arbiter.refresh()
        return self.arbiter.status_info()

    async def _source_of(self, conversation_id: str) -> Source:
        source = self._sources.get(conversation_id)
        if source is None:
            source = Source.LOCAL if await self.local.get_session(conversation_id) else Source.BACKEND
            self._sources[conversation_id] = source
        return source

    def _remember(self, conversations: List[UnifiedConversation]) -> List[UnifiedConversation]:
        for conversation in conversations:
            self._sources[conversation.id] = conversation.source
        return conversations
