"""AI dispatch gateway - one user message to assistant reply round trip.

Flow:
1. Guard: conversation must be active with no assistant reply pending
2. Record the user message (sent) and bump conversation activity
3. Build the prompt from the system prompt and delivered history
4. Record a pending assistant message and call the provider
5. Settle the assistant message as sent, or as failed with a readable error

Failures are recorded in the ledger and then re-raised to the caller.
"""
from typing import Any, Dict, List, Optional

from chatsync.errors import (
    InvalidStateError,
    ProviderUnavailableError,
    classify_failure,
    describe_failure,
)
from chatsync.middleware.logging import get_logger
from chatsync.models.conversation import Conversation
from chatsync.models.message import Message, MessageRole, MessageStatus
from chatsync.services.ai_provider import AIRequest, AIResponse, ChatTurn
from chatsync.services.conversation_directory import ConversationDirectory
from chatsync.services.message_ledger import MessageLedger
from chatsync.services.provider_registry import ProviderRegistry

logger = get_logger()


def build_prompt(conversation: Conversation, history: List[Message]) -> List[ChatTurn]:
    """System prompt first, then delivered non-system messages in sequence order."""
    turns = []
    if conversation.system_prompt:
        turns.append(ChatTurn(role=MessageRole.SYSTEM.value, content=conversation.system_prompt))

    for message in history:
        if message.role == MessageRole.SYSTEM or message.status != MessageStatus.SENT:
            continue
        turns.append(ChatTurn(role=message.role.value, content=message.content))
    return turns


class DispatchGateway:
    """Drives a single conversational round trip through the ledger."""

    def __init__(self, ledger: MessageLedger, directory: ConversationDirectory, registry: ProviderRegistry):
        self.ledger = ledger
        self.directory = directory
        self.registry = registry

    async def exchange(
        self,
        conversation: Conversation,
        user_id: str,
        content: str,
        parent_message_id: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None,
        override_settings: Optional[Dict[str, Any]] = None,
    ) -> Message:
        """
        Send ``content`` to the conversation's provider.

        Returns:
            The recorded user message

        Raises:
            InvalidStateError: Conversation inactive, or a reply is already pending
            ProviderUnavailableError: The provider failed; the failure is
                already recorded as a failed assistant message
        """
        if not conversation.is_active:
            raise InvalidStateError(
                "Conversation is not active",
                {"conversation_id": conversation.id}
            )
        if self.ledger.latest_pending_assistant(conversation.id) is not None:
            raise InvalidStateError(
                "An assistant response is already pending for this conversation",
                {"conversation_id": conversation.id}
            )

        settings = {**(conversation.settings or {}), **(override_settings or {})}

        user_message = self.ledger.create(
            conversation.id,
            MessageRole.USER,
            content,
            status=MessageStatus.SENT,
            parent_message_id=parent_message_id,
            attachments=attachments,
        )
        self.directory.record_activity(conversation.id, increment=1)

        logger.info(
            "dispatch_started",
            conversation_id=conversation.id,
            user_id=user_id,
            provider=conversation.provider,
            model=conversation.model
        )

        try:
            history = self.ledger.find_by_conversation(conversation.id)
            request = AIRequest(
                model=conversation.model,
                messages=build_prompt(conversation, history),
                settings=settings,
                conversation_id=conversation.id,
                user_id=user_id,
            )

            assistant = self.ledger.create(
                conversation.id,
                MessageRole.ASSISTANT,
                "",
                status=MessageStatus.PENDING,
                parent_message_id=user_message.id,
                metadata={"model": conversation.model, "settings": settings},
            )

            response = await self.registry.send_message(conversation.provider, request)
            if response.error:
                raise ProviderUnavailableError(
                    response.error,
                    {"provider": conversation.provider, "model": conversation.model}
                )

            self._settle(assistant.id, response)
            self.directory.record_activity(conversation.id, increment=1)

        except Exception as e:
            self._record_failure(conversation, e)
            if isinstance(e, ProviderUnavailableError):
                raise
            raise ProviderUnavailableError(
                str(e) or type(e).__name__,
                {"provider": conversation.provider, "model": conversation.model}
            ) from e

        return user_message

    def _settle(self, assistant_id: str, response: AIResponse) -> Optional[Message]:
        """Store the provider reply unless the message was settled meanwhile."""
        assistant = self.ledger.get(assistant_id)
        if assistant.status != MessageStatus.PENDING:
            logger.warning(
                "late_result_discarded",
                message_id=assistant_id,
                conversation_id=assistant.conversation_id,
                status=assistant.status.value
            )
            return None

        settled = self.ledger.update(assistant_id, {
            "content": response.content,
            "status": MessageStatus.SENT,
            "metadata": response.metadata,
        })
        logger.info(
            "dispatch_completed",
            message_id=assistant_id,
            conversation_id=assistant.conversation_id,
            provider=response.metadata.get("provider"),
            tokens_used=response.metadata.get("tokens_used"),
            processing_time_ms=response.metadata.get("processing_time_ms")
        )
        return settled

    def _record_failure(self, conversation: Conversation, error: Exception) -> None:
        category = classify_failure(error)
        metadata = {
            "error_type": "ai_provider_error",
            "error_category": category.value,
            "error_details": {"name": type(error).__name__, "message": str(error)},
        }
        changes = {
            "content": describe_failure(error),
            "status": MessageStatus.FAILED,
            "error": str(error) or type(error).__name__,
            "metadata": metadata,
        }

        logger.error(
            "dispatch_failed",
            conversation_id=conversation.id,
            provider=conversation.provider,
            error=str(error),
            error_type=type(error).__name__,
            category=category.value
        )

        try:
            pending = self.ledger.latest_pending_assistant(conversation.id)
            if pending is not None:
                self.ledger.update(pending.id, changes)
            else:
                self.ledger.create(
                    conversation.id,
                    MessageRole.ASSISTANT,
                    changes["content"],
                    status=MessageStatus.FAILED,
                    error=changes["error"],
                    metadata=metadata,
                )
            self.directory.record_activity(conversation.id, increment=1)
        except Exception as record_error:
            # The original dispatch error is still raised by the caller
            logger.error(
                "dispatch_failure_not_recorded",
                conversation_id=conversation.id,
                error=str(record_error),
                error_type=type(record_error).__name__
            )
