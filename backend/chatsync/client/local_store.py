"""Single-device chat store on top of a KeyValueStore.

Layout:
    chatsync_sessions              JSON list of sessions
    chatsync_messages_<session>    JSON list of that session's messages
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from pydantic import TypeAdapter, ValidationError as SchemaError

from chatsync.client.key_value import KeyValueStore
from chatsync.client.models import LocalAttachment, LocalMessage, LocalSession
from chatsync.errors import NotFoundError, ValidationError

logger = structlog.get_logger()

KEY_PREFIX = "chatsync_"
SESSIONS_KEY = "chatsync_sessions"
MESSAGES_KEY_PREFIX = "chatsync_messages_"

_sessions_adapter = TypeAdapter(List[LocalSession])
_messages_adapter = TypeAdapter(List[LocalMessage])


def generate_local_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class LocalChatStore:
    """Sessions and messages persisted on this device only."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    async def initialize(self) -> None:
        if await self.kv.get(SESSIONS_KEY) is None:
            await self.kv.set(SESSIONS_KEY, "[]")

    async def _load_sessions(self) -> List[LocalSession]:
        raw = await self.kv.get(SESSIONS_KEY)
        return _sessions_adapter.validate_json(raw) if raw else []

    async def _save_sessions(self, sessions: List[LocalSession]) -> None:
        await self.kv.set(SESSIONS_KEY, _sessions_adapter.dump_json(sessions).decode())

    async def _load_messages(self, session_id: str) -> List[LocalMessage]:
        raw = await self.kv.get(MESSAGES_KEY_PREFIX + session_id)
        return _messages_adapter.validate_json(raw) if raw else []

    async def _save_messages(self, session_id: str, messages: List[LocalMessage]) -> None:
        await self.kv.set(MESSAGES_KEY_PREFIX + session_id, _messages_adapter.dump_json(messages).decode())

    async def create_session(self, name: str) -> LocalSession:
        if not name or not name.strip():
            raise ValidationError("Session name must not be empty")

        now = datetime.utcnow()
        session = LocalSession(
            id=generate_local_id("local"),
            name=name.strip(),
            created_at=now,
            updated_at=now,
        )
        sessions = await self._load_sessions()
        sessions.insert(0, session)
        await self._save_sessions(sessions)

        logger.info("local_session_created", session_id=session.id)
        return session

    async def get_sessions(self) -> List[LocalSession]:
        """Sessions, most recently updated first."""
        sessions = await self._load_sessions()
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)

    async def get_session(self, session_id: str) -> Optional[LocalSession]:
        for session in await self._load_sessions():
            if session.id == session_id:
                return session
        return None

    async def save_message(
        self,
        session_id: str,
        role: str,
        content: str,
        attachments: Optional[List[LocalAttachment]] = None,
    ) -> LocalMessage:
        """Append a message and bump the session's counter and updated_at."""
        sessions = await self._load_sessions()
        session = next((s for s in sessions if s.id == session_id), None)
        if session is None:
            raise NotFoundError(f"Local session {session_id} not found")

        message = LocalMessage(
            id=generate_local_id("lmsg"),
            session_id=session_id,
            role=role,
            content=content,
            timestamp=datetime.utcnow(),
            attachments=list(attachments or []),
        )
        messages = await self._load_messages(session_id)
        messages.append(message)
        await self._save_messages(session_id, messages)

        session.message_count += 1
        session.updated_at = message.timestamp
        await self._save_sessions(sessions)
        return message

    async def get_messages(self, session_id: str) -> List[LocalMessage]:
        return await self._load_messages(session_id)

    async def search_messages(self, session_id: str, query: str) -> List[LocalMessage]:
        needle = query.lower()
        return [m for m in await self._load_messages(session_id) if needle in m.content.lower()]

    async def delete_session(self, session_id: str) -> None:
        sessions = await self._load_sessions()
        remaining = [s for s in sessions if s.id != session_id]
        if len(remaining) == len(sessions):
            raise NotFoundError(f"Local session {session_id} not found")

        await self.kv.delete(MESSAGES_KEY_PREFIX + session_id)
        await self._save_sessions(remaining)
        logger.info("local_session_deleted", session_id=session_id)

    async def clear_all(self) -> None:
        for key in await self.kv.keys(KEY_PREFIX):
            await self.kv.delete(key)
        await self.kv.set(SESSIONS_KEY, "[]")

    async def export_data(self) -> Dict[str, Any]:
        sessions = await self.get_sessions()
        messages = {
            session.id: [m.model_dump(mode="json") for m in await self._load_messages(session.id)]
            for session in sessions
        }
        return {
            "sessions": [s.model_dump(mode="json") for s in sessions],
            "messages": messages,
            "exported_at": datetime.utcnow().isoformat(),
            "storage_type": type(self.kv).__name__,
        }

    async def import_data(self, data: Dict[str, Any]) -> int:
        """
        Replace all local data with an export.

        Returns:
            Number of sessions imported

        Raises:
            ValidationError: The payload is not a valid export; nothing is changed
        """
        try:
            sessions = _sessions_adapter.validate_python(data.get("sessions") or [])
            messages = {
                session_id: _messages_adapter.validate_python(items)
                for session_id, items in (data.get("messages") or {}).items()
            }
        except (SchemaError, AttributeError) as e:
            raise ValidationError(f"Invalid export data: {e}") from e

        await self.clear_all()
        await self._save_sessions(sessions)
        for session_id, items in messages.items():
            await self._save_messages(session_id, items)

        logger.info("local_data_imported", sessions=len(sessions))
        return len(sessions)
