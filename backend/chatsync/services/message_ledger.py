"""Message ledger - ordered, status-tracked message storage per conversation.

Owns sequence-number assignment and the delivery-status state machine:
a message is created ``pending`` or terminal; ``content``, ``status`` and
``error`` may only change while it is ``pending``. Terminal messages accept
metadata merges only.
"""
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from datetime import datetime

from chatsync.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from chatsync.middleware.logging import get_logger
from chatsync.models.message import Message, MessageRole, MessageStatus
from chatsync.services.pagination import PageResult, paginate

logger = get_logger()

MUTABLE_FIELDS = {"content", "status", "error", "metadata"}
IMMUTABLE_FIELDS = {"id", "conversation_id", "role", "sequence_number", "created_at"}

SORT_COLUMNS = {
    "sequenceNumber": Message.sequence_number,
    "sequence_number": Message.sequence_number,
    "createdAt": Message.created_at,
    "created_at": Message.created_at,
    "updatedAt": Message.updated_at,
    "updated_at": Message.updated_at,
}


def _coerce_enum(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}'. Allowed: {allowed}", {field: value})


class MessageLedger:
    """Message persistence for a single database session."""

    def __init__(self, db: Session):
        self.db = db

    def next_sequence_number(self, conversation_id: str) -> int:
        current = self.db.query(func.max(Message.sequence_number)).filter(
            Message.conversation_id == conversation_id
        ).scalar()
        return (current or 0) + 1

    def latest_pending_assistant(self, conversation_id: str) -> Optional[Message]:
        return self.db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.role == MessageRole.ASSISTANT,
            Message.status == MessageStatus.PENDING,
        ).order_by(Message.sequence_number.desc()).first()

    def create(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        status: MessageStatus = MessageStatus.SENT,
        parent_message_id: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> Message:
        """
        Append a message with the next sequence number.

        Raises:
            ValidationError: Unknown role or status
            InvalidStateError: A second pending assistant message
            ConflictError: A concurrent writer took the same sequence number
        """
        role = _coerce_enum(MessageRole, role, "role")
        status = _coerce_enum(MessageStatus, status, "status")

        if role == MessageRole.ASSISTANT and status == MessageStatus.PENDING:
            if self.latest_pending_assistant(conversation_id) is not None:
                raise InvalidStateError(
                    "An assistant response is already pending for this conversation",
                    {"conversation_id": conversation_id}
                )

        now = datetime.utcnow()
        message = Message(
            conversation_id=conversation_id,
            role=role,
            content=content,
            status=status,
            parent_message_id=parent_message_id,
            attachments=list(attachments or []),
            extra_data=dict(metadata or {}),
            error=error,
            sequence_number=self.next_sequence_number(conversation_id),
            created_at=now,
            updated_at=now,
        )
        self.db.add(message)

        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(
                "Message sequence number already taken",
                {"conversation_id": conversation_id}
            ) from e

        self.db.refresh(message)
        logger.info(
            "message_created",
            message_id=message.id,
            conversation_id=conversation_id,
            role=role.value,
            status=status.value,
            sequence_number=message.sequence_number
        )
        return message

    def find_by_id(self, message_id: str) -> Optional[Message]:
        return self.db.query(Message).filter(Message.id == message_id).first()

    def get(self, message_id: str) -> Message:
        message = self.find_by_id(message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        return message

    def update(self, message_id: str, changes: Dict[str, Any]) -> Message:
        """
        Apply a partial update.

        ``metadata`` is merged into the existing metadata. ``updated_at`` is
        always refreshed.

        Raises:
            NotFoundError: Unknown message
            ValidationError: Immutable or unknown field, invalid status
            InvalidStateError: Content/status/error change on a terminal message
        """
        message = self.get(message_id)

        immutable = IMMUTABLE_FIELDS.intersection(changes)
        if immutable:
            raise ValidationError(
                f"Fields cannot be changed: {', '.join(sorted(immutable))}",
                {"fields": sorted(immutable)}
            )
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown message fields: {', '.join(sorted(unknown))}",
                {"fields": sorted(unknown)}
            )

        state_changes = {key for key in changes if key != "metadata"}
        if state_changes and message.status.is_terminal:
            raise InvalidStateError(
                f"Message {message_id} is {message.status.value}; only metadata can change",
                {"message_id": message_id, "status": message.status.value}
            )

        if "status" in changes:
            message.status = _coerce_enum(MessageStatus, changes["status"], "status")
        if "content" in changes:
            message.content = changes["content"]
        if "error" in changes:
            message.error = changes["error"]
        if changes.get("metadata"):
            message.extra_data = {**(message.extra_data or {}), **changes["metadata"]}

        message.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(message)
        return message

    def find_by_conversation(
        self,
        conversation_id: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: str = "sequence_number",
        order: str = "asc",
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Message]:
        """Messages of a conversation, ascending sequence order by default.

        ``where`` accepts ``role`` and ``status`` equality filters.
        """
        query = self.db.query(Message).filter(Message.conversation_id == conversation_id)

        for key, value in (where or {}).items():
            if key == "role":
                query = query.filter(Message.role == _coerce_enum(MessageRole, value, "role"))
            elif key == "status":
                query = query.filter(Message.status == _coerce_enum(MessageStatus, value, "status"))
            else:
                raise ValidationError(f"Cannot filter messages by '{key}'")

        query = query.order_by(self._order_clause(order_by, order))
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def find_by_conversation_paginated(
        self,
        conversation_id: str,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        sort_by: str = "sequenceNumber",
        sort_order: str = "asc",
    ) -> PageResult:
        query = self.db.query(Message).filter(Message.conversation_id == conversation_id)
        if search:
            query = query.filter(self._content_matches(search))
        query = query.order_by(self._order_clause(sort_by, sort_order))
        return paginate(query, page, limit)

    def search(self, conversation_id: str, query: str) -> List[Message]:
        """Case-insensitive substring search over content."""
        if not query or not query.strip():
            raise ValidationError("Search query must not be empty")

        return self.db.query(Message).filter(
            Message.conversation_id == conversation_id,
            self._content_matches(query),
        ).order_by(Message.sequence_number.asc()).all()

    def last_message(self, conversation_id: str) -> Optional[Message]:
        return self.db.query(Message).filter(
            Message.conversation_id == conversation_id
        ).order_by(Message.sequence_number.desc()).first()

    def count_by_conversation(self, conversation_id: str) -> int:
        return self.db.query(Message).filter(Message.conversation_id == conversation_id).count()

    def delete(self, message_id: str) -> None:
        message = self.get(message_id)
        conversation_id = message.conversation_id
        self.db.delete(message)
        self.db.commit()
        logger.info("message_deleted", message_id=message_id, conversation_id=conversation_id)

    def delete_by_conversation(self, conversation_id: str) -> int:
        deleted = self.db.query(Message).filter(
            Message.conversation_id == conversation_id
        ).delete(synchronize_session=False)
        self.db.commit()
        logger.info("messages_deleted", conversation_id=conversation_id, count=deleted)
        return deleted

    def _content_matches(self, text: str):
        return func.lower(Message.content).contains(text.lower(), autoescape=True)

    def _order_clause(self, sort_by: str, sort_order: str):
        column = SORT_COLUMNS.get(sort_by)
        if column is None:
            raise ValidationError(f"Cannot sort messages by '{sort_by}'")
        if sort_order not in ("asc", "desc"):
            raise ValidationError(f"Invalid sort order '{sort_order}'")
        return column.asc() if sort_order == "asc" else column.desc()
