"""Chat service - conversation and message operations for an authenticated user.

Every conversation-scoped call goes through
ConversationDirectory.validate_ownership before touching the ledger.
"""
import base64
import binascii
import uuid
from contextlib import nullcontext
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from chatsync.config import Settings, get_settings
from chatsync.errors import ValidationError
from chatsync.middleware.logging import get_logger
from chatsync.models.conversation import Conversation
from chatsync.models.message import Message, MessageRole
from chatsync.schemas.conversation import ConversationCreate, ConversationQuery, ConversationUpdate
from chatsync.schemas.message import AttachmentUpload, MessageCreate, MessageQuery
from chatsync.services.conversation_directory import ConversationDirectory
from chatsync.services.dispatch_gateway import DispatchGateway
from chatsync.services.dispatch_guard import DispatchGuard
from chatsync.services.message_ledger import MessageLedger
from chatsync.services.pagination import PageResult
from chatsync.services.provider_registry import ProviderRegistry

logger = get_logger()

PREVIEW_LENGTH = 100


def preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    if len(content) <= length:
        return content
    return content[:length] + "..."


class ChatService:
    """Orchestrates the directory, ledger and dispatch gateway."""

    def __init__(
        self,
        db: Session,
        registry: ProviderRegistry,
        guard: Optional[DispatchGuard] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry
        self.guard = guard
        self.directory = ConversationDirectory(db)
        self.ledger = MessageLedger(db)
        self.gateway = DispatchGateway(self.ledger, self.directory, registry)

    # Conversations

    async def create_conversation(self, user_id: str, data: ConversationCreate) -> Conversation:
        """
        Create a conversation after validating provider, model and settings.

        Raises:
            ValidationError: Unknown provider or invalid settings
        """
        if not self.registry.is_registered(data.provider):
            raise ValidationError(
                f"AI provider '{data.provider}' is not available",
                {"available": self.registry.list_names()}
            )

        self._validate_settings(data.provider, data.settings)
        await self._check_model(data.provider, data.model)

        return self.directory.create(
            user_id=user_id,
            title=data.title,
            provider=data.provider,
            model=data.model,
            system_prompt=data.system_prompt,
            settings=data.settings,
        )

    def list_conversations(self, user_id: str, query: ConversationQuery) -> PageResult:
        """Paginated conversations, each with a preview of its last message."""
        result = self.directory.find_by_user(
            user_id,
            page=query.page,
            limit=query.limit,
            search=query.search,
            sort_by=query.sort_by,
            sort_order=query.sort_order,
        )

        for conversation in result.data:
            last = self.ledger.last_message(conversation.id)
            conversation.last_message = None if last is None else {
                "content": preview(last.content),
                "role": last.role.value,
                "created_at": last.created_at,
            }
        return result

    def get_conversation(self, conversation_id: str, user_id: str) -> Conversation:
        return self.directory.validate_ownership(conversation_id, user_id)

    async def update_conversation(self, conversation_id: str, user_id: str, data: ConversationUpdate) -> Conversation:
        conversation = self.directory.validate_ownership(conversation_id, user_id)
        changes = data.model_dump(exclude_unset=True)

        provider = changes.get("provider", conversation.provider)
        if "provider" in changes and not self.registry.is_registered(provider):
            raise ValidationError(
                f"AI provider '{provider}' is not available",
                {"available": self.registry.list_names()}
            )
        if "settings" in changes:
            self._validate_settings(provider, changes["settings"] or {})
        if "model" in changes or "provider" in changes:
            await self._check_model(provider, changes.get("model", conversation.model))

        return self.directory.update(conversation_id, changes)

    def delete_conversation(self, conversation_id: str, user_id: str) -> int:
        """Delete the conversation and all its messages. Returns messages removed."""
        self.directory.validate_ownership(conversation_id, user_id)
        removed = self.ledger.delete_by_conversation(conversation_id)
        self.directory.delete(conversation_id)
        return removed

    def get_stats(self, conversation_id: str, user_id: str) -> Dict[str, Any]:
        conversation = self.directory.validate_ownership(conversation_id, user_id)
        messages = self.ledger.find_by_conversation(conversation_id)

        tokens_used = sum(int((m.extra_data or {}).get("tokens_used") or 0) for m in messages)
        response_times = [
            (m.extra_data or {}).get("processing_time_ms")
            for m in messages
            if m.role == MessageRole.ASSISTANT
        ]
        response_times = [t for t in response_times if t is not None]
        average = sum(response_times) / len(response_times) if response_times else 0.0

        return {
            "message_count": conversation.message_count,
            "tokens_used": tokens_used,
            "average_response_time": average,
            "last_activity": conversation.last_activity,
        }

    # Messages

    async def send_message(self, conversation_id: str, user_id: str, data: MessageCreate) -> Message:
        """Record the user message and run the AI round trip."""
        conversation = self.directory.validate_ownership(conversation_id, user_id)

        if data.parent_message_id:
            parent = self.ledger.find_by_id(data.parent_message_id)
            if parent is None or parent.conversation_id != conversation_id:
                raise ValidationError(
                    "Parent message does not belong to this conversation",
                    {"parent_message_id": data.parent_message_id}
                )
        if data.override_settings and self.registry.is_registered(conversation.provider):
            self._validate_settings(conversation.provider, data.override_settings)

        attachments = self._process_attachments(data.attachments)

        guard = self.guard.dispatch_context(conversation_id) if self.guard else nullcontext()
        with guard:
            return await self.gateway.exchange(
                conversation,
                user_id,
                data.content,
                parent_message_id=data.parent_message_id,
                attachments=attachments,
                override_settings=data.override_settings,
            )

    def get_messages(self, conversation_id: str, user_id: str, query: MessageQuery) -> PageResult:
        self.directory.validate_ownership(conversation_id, user_id)
        return self.ledger.find_by_conversation_paginated(
            conversation_id,
            page=query.page,
            limit=query.limit,
            search=query.search,
            sort_by=query.sort_by,
            sort_order=query.sort_order,
        )

    def search_messages(self, conversation_id: str, user_id: str, text: str) -> List[Message]:
        self.directory.validate_ownership(conversation_id, user_id)
        return self.ledger.search(conversation_id, text)

    async def get_available_providers(self) -> List[Dict[str, Any]]:
        return await self.registry.describe()

    # Helpers

    def _validate_settings(self, provider: str, settings: Dict[str, Any]) -> None:
        result = self.registry.validate_settings(provider, settings)
        if not result.is_valid:
            raise ValidationError(
                f"Invalid settings: {'; '.join(result.errors)}",
                {"errors": result.errors, "warnings": result.warnings}
            )
        if result.warnings:
            logger.info("settings_warnings", provider=provider, warnings=result.warnings)

    async def _check_model(self, provider: str, model: str) -> None:
        """Warn about a model the provider does not list; unlisted models may still work."""
        try:
            models = await self.registry.get_models(provider)
        except Exception as e:
            logger.warning("model_check_skipped", provider=provider, model=model, error=str(e))
            return

        names = {m.name for m in models}
        if names and model not in names:
            logger.warning("model_not_listed", provider=provider, model=model, available=sorted(names))

    def _process_attachments(self, uploads: List[AttachmentUpload]) -> List[Dict[str, Any]]:
        attachments = []
        for upload in uploads:
            try:
                raw = base64.b64decode(upload.data, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValidationError(f"Attachment '{upload.name}' is not valid base64") from e

            if len(raw) > self.settings.max_attachment_bytes:
                raise ValidationError(
                    f"Attachment '{upload.name}' exceeds {self.settings.max_attachment_bytes} bytes"
                )

            attachment_id = f"att_{uuid.uuid4().hex}"
            attachments.append({
                "id": attachment_id,
                "name": upload.name,
                "mime_type": upload.type,
                "size": len(raw),
                "url": f"{self.settings.attachment_base_url.rstrip('/')}/{attachment_id}/{upload.name}",
            })
        return attachments
