"""Optimistic message buffer.

Holds synthetic messages shown while a send is in flight. Each entry is
tagged with a temporary correlation id so it can be removed or replaced
once the authoritative outcome is known.
"""
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from chatsync.client.models import Source, UnifiedMessage

TEMP_PREFIX = "temp_"


def is_temporary(message_id: str) -> bool:
    return message_id.startswith(TEMP_PREFIX)


class OptimisticMessageBuffer:
    """Pending synthetic messages keyed by correlation id."""

    def __init__(self):
        self._entries: Dict[str, UnifiedMessage] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def add(
        self,
        conversation_id: str,
        content: str,
        role: str = "user",
        source: Source = Source.BACKEND,
    ) -> UnifiedMessage:
        now = datetime.utcnow()
        message = UnifiedMessage(
            id=f"{TEMP_PREFIX}{uuid.uuid4().hex}",
            conversation_id=conversation_id,
            role=role,
            content=content,
            status="pending",
            created_at=now,
            updated_at=now,
            source=source,
        )
        self._entries[message.id] = message
        return message

    def remove(self, temp_id: str) -> Optional[UnifiedMessage]:
        return self._entries.pop(temp_id, None)

    def replace(self, temp_id: str, confirmed: UnifiedMessage) -> UnifiedMessage:
        """Swap a synthetic entry for its confirmed counterpart."""
        self._entries.pop(temp_id, None)
        return confirmed

    def get(self, temp_id: str) -> Optional[UnifiedMessage]:
        return self._entries.get(temp_id)

    def pending_for(self, conversation_id: str) -> List[UnifiedMessage]:
        return [m for m in self._entries.values() if m.conversation_id == conversation_id]

    def clear(self, conversation_id: Optional[str] = None) -> None:
        if conversation_id is None:
            self._entries.clear()
            return
        for temp_id in [k for k, m in self._entries.items() if m.conversation_id == conversation_id]:
            del self._entries[temp_id]
