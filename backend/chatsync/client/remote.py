"""HTTP client for the ChatSync server.

Transport failures and timeouts surface as ConnectivityError; HTTP error
responses are mapped back to the server's error taxonomy.
"""
import httpx
import structlog
from typing import Any, Dict, List, Optional

from chatsync.errors import ChatSyncError, ConnectivityError, error_from_payload
from chatsync.schemas.common import Page
from chatsync.schemas.conversation import (
    ConversationCreate,
    ConversationResponse,
    ConversationStats,
    ConversationUpdate,
)
from chatsync.schemas.message import MessageCreate, MessageResponse
from chatsync.schemas.provider import ProviderInfo

logger = structlog.get_logger()


class RemoteChatClient:
    """Async client for the conversation and message endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        send_timeout: float = 120.0,
        health_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Server URL
            api_key: Sent as x-api-key; the client counts as authenticated
                only when this is set
            timeout: Default request timeout in seconds
            send_timeout: Timeout for sending a message (full AI round trip)
            health_timeout: Timeout for the health probe
            transport: Optional httpx transport (tests use ASGITransport)
        """
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.send_timeout = send_timeout
        self.health_timeout = health_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {"x-api-key": self.api_key} if self.api_key else {}
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ConnectivityError(f"Request to {path} timed out", {"path": path}) from e
        except httpx.TransportError as e:
            raise ConnectivityError(f"Cannot reach server: {e}", {"path": path}) from e

        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            error = error_from_payload(response.status_code, payload)
            logger.info(
                "remote_request_failed",
                method=method,
                path=path,
                status_code=response.status_code,
                error_type=error.code
            )
            raise error

        return response

    async def health_check(self) -> bool:
        """True when the server answers its health endpoint. Never raises."""
        try:
            response = await self._request("GET", "/health", timeout=self.health_timeout)
            return response.json().get("status") == "healthy"
        except ChatSyncError:
            return False

    # Conversations

    async def list_conversations(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> Page[ConversationResponse]:
        params: Dict[str, Any] = {"page": page, "limit": limit, "sortBy": sort_by, "sortOrder": sort_order}
        if search:
            params["search"] = search
        response = await self._request("GET", "/conversations", params=params)
        return Page[ConversationResponse].model_validate(response.json())

    async def get_conversation(self, conversation_id: str) -> ConversationResponse:
        response = await self._request("GET", f"/conversations/{conversation_id}")
        return ConversationResponse.model_validate(response.json())

    async def create_conversation(self, data: ConversationCreate) -> ConversationResponse:
        response = await self._request(
            "POST", "/conversations", json=data.model_dump(mode="json", by_alias=True)
        )
        return ConversationResponse.model_validate(response.json())

    async def update_conversation(self, conversation_id: str, data: ConversationUpdate) -> ConversationResponse:
        response = await self._request(
            "PATCH",
            f"/conversations/{conversation_id}",
            json=data.model_dump(mode="json", by_alias=True, exclude_unset=True),
        )
        return ConversationResponse.model_validate(response.json())

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._request("DELETE", f"/conversations/{conversation_id}")

    async def get_stats(self, conversation_id: str) -> ConversationStats:
        response = await self._request("GET", f"/conversations/{conversation_id}/stats")
        return ConversationStats.model_validate(response.json())

    # Messages

    async def get_messages(
        self,
        conversation_id: str,
        page: int = 1,
        limit: int = 100,
        search: Optional[str] = None,
    ) -> Page[MessageResponse]:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if search:
            params["search"] = search
        response = await self._request("GET", f"/conversations/{conversation_id}/messages", params=params)
        return Page[MessageResponse].model_validate(response.json())

    async def get_all_messages(self, conversation_id: str, page_size: int = 100) -> List[MessageResponse]:
        """Every message of a conversation in sequence order, across pages."""
        messages: List[MessageResponse] = []
        page = 1
        while True:
            result = await self.get_messages(conversation_id, page=page, limit=page_size)
            messages.extend(result.data)
            if not result.pagination.has_next:
                return messages
            page += 1

    async def send_message(self, conversation_id: str, data: MessageCreate) -> MessageResponse:
        response = await self._request(
            "POST",
            f"/conversations/{conversation_id}/messages",
            json=data.model_dump(mode="json", by_alias=True, exclude_none=True),
            timeout=self.send_timeout,
        )
        return MessageResponse.model_validate(response.json())

    async def search_messages(self, conversation_id: str, query: str) -> List[MessageResponse]:
        response = await self._request(
            "GET", f"/conversations/{conversation_id}/messages/search", params={"q": query}
        )
        return [MessageResponse.model_validate(item) for item in response.json()]

    async def get_providers(self) -> List[ProviderInfo]:
        response = await self._request("GET", "/providers")
        return [ProviderInfo.model_validate(item) for item in response.json()]
