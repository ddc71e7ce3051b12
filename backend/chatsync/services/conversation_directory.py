"""Conversation directory - conversation records, ownership and counters."""
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional
from datetime import datetime

from chatsync.errors import ForbiddenError, NotFoundError, ValidationError
from chatsync.middleware.logging import get_logger
from chatsync.models.conversation import Conversation
from chatsync.services.pagination import PageResult, paginate

logger = get_logger()

UPDATABLE_FIELDS = {"title", "provider", "model", "system_prompt", "settings", "is_active", "metadata"}

SORT_COLUMNS = {
    "createdAt": Conversation.created_at,
    "created_at": Conversation.created_at,
    "updatedAt": Conversation.updated_at,
    "updated_at": Conversation.updated_at,
    "lastActivity": Conversation.last_activity,
    "last_activity": Conversation.last_activity,
    "title": Conversation.title,
}


class ConversationDirectory:
    """Conversation persistence for a single database session."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        title: str,
        provider: str,
        model: str,
        system_prompt: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> Conversation:
        if not title or not title.strip():
            raise ValidationError("Conversation title must not be empty")

        now = datetime.utcnow()
        conversation = Conversation(
            user_id=user_id,
            title=title.strip(),
            provider=provider,
            model=model,
            system_prompt=system_prompt,
            settings=dict(settings or {}),
            message_count=0,
            last_activity=now,
            is_active=True,
            extra_data={},
            created_at=now,
            updated_at=now,
        )
        self.db.add(conversation)
        self.db.commit()
        self.db.refresh(conversation)

        logger.info(
            "conversation_created",
            conversation_id=conversation.id,
            user_id=user_id,
            provider=provider,
            model=model
        )
        return conversation

    def find_by_id(self, conversation_id: str) -> Optional[Conversation]:
        return self.db.query(Conversation).filter(Conversation.id == conversation_id).first()

    def get(self, conversation_id: str) -> Conversation:
        conversation = self.find_by_id(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    def find_by_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> PageResult:
        """Paginated conversations of a user; ``search`` matches title or model."""
        column = SORT_COLUMNS.get(sort_by)
        if column is None:
            raise ValidationError(f"Cannot sort conversations by '{sort_by}'")
        if sort_order not in ("asc", "desc"):
            raise ValidationError(f"Invalid sort order '{sort_order}'")

        query = self.db.query(Conversation).filter(Conversation.user_id == user_id)
        if search:
            needle = search.lower()
            query = query.filter(or_(
                func.lower(Conversation.title).contains(needle, autoescape=True),
                func.lower(Conversation.model).contains(needle, autoescape=True),
            ))

        query = query.order_by(column.asc() if sort_order == "asc" else column.desc())
        return paginate(query, page, limit)

    def update(self, conversation_id: str, changes: Dict[str, Any]) -> Conversation:
        """
        Apply a partial update.

        Raises:
            NotFoundError: Unknown conversation
            ValidationError: Attempt to change the owner or an unknown field
        """
        if "user_id" in changes:
            raise ValidationError("The owner of a conversation cannot be changed")
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown conversation fields: {', '.join(sorted(unknown))}",
                {"fields": sorted(unknown)}
            )

        conversation = self.get(conversation_id)
        for key, value in changes.items():
            if key == "metadata":
                conversation.extra_data = {**(conversation.extra_data or {}), **(value or {})}
            elif key == "settings":
                conversation.settings = dict(value or {})
            else:
                setattr(conversation, key, value)

        conversation.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(conversation)

        logger.info("conversation_updated", conversation_id=conversation_id, fields=sorted(changes))
        return conversation

    def delete(self, conversation_id: str) -> None:
        conversation = self.get(conversation_id)
        self.db.delete(conversation)
        self.db.commit()
        logger.info("conversation_deleted", conversation_id=conversation_id)

    def validate_ownership(self, conversation_id: str, user_id: str) -> Conversation:
        """
        Authorization checkpoint for every conversation-scoped operation.

        Raises:
            NotFoundError: Unknown conversation
            ForbiddenError: Conversation belongs to another user
        """
        conversation = self.get(conversation_id)
        if conversation.user_id != user_id:
            logger.warning(
                "conversation_access_denied",
                conversation_id=conversation_id,
                user_id=user_id
            )
            raise ForbiddenError("You do not have access to this conversation")
        return conversation

    def record_activity(self, conversation_id: str, increment: int = 0) -> Conversation:
        """Bump the message counter and move last_activity forward (never back)."""
        conversation = self.get(conversation_id)
        now = datetime.utcnow()

        if increment:
            conversation.message_count = max(0, (conversation.message_count or 0) + increment)
        if conversation.last_activity is None or now > conversation.last_activity:
            conversation.last_activity = now
        conversation.updated_at = now

        self.db.commit()
        self.db.refresh(conversation)
        return conversation

    def increment_message_count(self, conversation_id: str, delta: int = 1) -> Conversation:
        conversation = self.get(conversation_id)
        conversation.message_count = max(0, (conversation.message_count or 0) + delta)
        conversation.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(conversation)
        return conversation

    def touch(self, conversation_id: str) -> Conversation:
        return self.record_activity(conversation_id, increment=0)
