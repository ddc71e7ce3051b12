"""Tests for mapping store records to unified views."""
from datetime import datetime

from chatsync.client import adapter
from chatsync.client.models import (
    CreateConversationAction,
    LocalAttachment,
    LocalMessage,
    LocalSession,
    SendMessageAction,
    Source,
)
from chatsync.models.message import MessageRole, MessageStatus
from chatsync.schemas.conversation import ConversationResponse, LastMessagePreview
from chatsync.schemas.message import AttachmentResponse, AttachmentUpload, MessageResponse

NOW = datetime(2024, 5, 1, 12, 0, 0)


def backend_conversation(**overrides):
    data = dict(
        id="conv_1",
        user_id="user_1",
        title="Remote",
        provider="ollama",
        model="llama3",
        system_prompt="Be kind.",
        settings={"temperature": 0.4},
        message_count=4,
        last_activity=NOW,
        created_at=NOW,
        updated_at=NOW,
        metadata={"pinned": True},
    )
    data.update(overrides)
    return ConversationResponse(**data)


def test_conversation_from_backend():
    record = backend_conversation(
        last_message=LastMessagePreview(content="Last words", role="assistant", created_at=NOW)
    )

    unified = adapter.conversation_from_backend(record)

    assert unified.source == Source.BACKEND
    assert unified.model == "llama3"
    assert unified.settings == {"temperature": 0.4}
    assert unified.metadata == {"pinned": True}
    assert unified.last_message == "Last words"


def test_conversation_from_backend_without_last_message():
    assert adapter.conversation_from_backend(backend_conversation()).last_message is None


def test_conversation_from_local_has_unknown_model():
    session = LocalSession(id="local_1", name="Offline notes", created_at=NOW, updated_at=NOW, message_count=2)

    unified = adapter.conversation_from_local(session, provider="mock")

    assert unified.source == Source.LOCAL
    assert unified.title == "Offline notes"
    assert unified.model == "unknown"
    assert unified.provider == "mock"
    assert unified.last_activity == NOW
    assert unified.message_count == 2


def test_message_from_backend():
    record = MessageResponse(
        id="msg_1",
        conversation_id="conv_1",
        role=MessageRole.ASSISTANT,
        content="",
        status=MessageStatus.FAILED,
        error="timed out",
        sequence_number=2,
        attachments=[AttachmentResponse(id="att_1", name="a.txt", mime_type="text/plain", size=3, url="/attachments/att_1/a.txt")],
        created_at=NOW,
        updated_at=NOW,
    )

    unified = adapter.message_from_backend(record)

    assert unified.role == "assistant"
    assert unified.status == "failed"
    assert unified.error == "timed out"
    assert unified.attachments[0].url == "/attachments/att_1/a.txt"
    assert unified.source == Source.BACKEND


def test_message_from_local_is_always_sent():
    message = LocalMessage(
        id="lmsg_1",
        session_id="local_1",
        role="user",
        content="offline note",
        timestamp=NOW,
        attachments=[LocalAttachment(id="att_1", name="a.png", type="image/png", size=10, path="/tmp/a.png")],
    )

    unified = adapter.message_from_local(message, sequence_number=3)

    assert unified.status == "sent"
    assert unified.conversation_id == "local_1"
    assert unified.sequence_number == 3
    assert unified.attachments[0].mime_type == "image/png"
    assert unified.attachments[0].path == "/tmp/a.png"
    assert unified.source == Source.LOCAL


def test_create_request_fills_defaults():
    request = adapter.create_request(CreateConversationAction(title="New"), "mock", "mock-echo")

    assert request.provider == "mock"
    assert request.model == "mock-echo"


def test_send_request_carries_attachments():
    upload = AttachmentUpload(name="a.txt", type="text/plain", size=2, data="aGk=")
    action = SendMessageAction(conversation_id="conv_1", content="hi", attachments=[upload])

    request = adapter.send_request(action)

    assert request.content == "hi"
    assert request.attachments[0].name == "a.txt"
