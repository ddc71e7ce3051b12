"""Tests for the optimistic message buffer."""
from datetime import datetime

from chatsync.client.models import Source, UnifiedMessage
from chatsync.client.optimistic import OptimisticMessageBuffer, is_temporary


def test_add_creates_pending_temporary_message():
    buffer = OptimisticMessageBuffer()

    message = buffer.add("conv_1", "Hello")

    assert is_temporary(message.id)
    assert message.status == "pending"
    assert message.role == "user"
    assert buffer.get(message.id) is message
    assert len(buffer) == 1


def test_pending_for_filters_by_conversation():
    buffer = OptimisticMessageBuffer()
    first = buffer.add("conv_1", "a")
    buffer.add("conv_2", "b")

    assert buffer.pending_for("conv_1") == [first]


def test_remove():
    buffer = OptimisticMessageBuffer()
    message = buffer.add("conv_1", "a")

    assert buffer.remove(message.id) is message
    assert buffer.remove(message.id) is None
    assert len(buffer) == 0


def test_replace_returns_confirmed_message():
    buffer = OptimisticMessageBuffer()
    message = buffer.add("conv_1", "a")
    confirmed = UnifiedMessage(
        id="msg_1",
        conversation_id="conv_1",
        role="user",
        content="a",
        created_at=datetime.utcnow(),
        source=Source.BACKEND,
    )

    assert buffer.replace(message.id, confirmed) is confirmed
    assert buffer.get(message.id) is None
    assert not is_temporary(confirmed.id)


def test_clear_one_conversation():
    buffer = OptimisticMessageBuffer()
    buffer.add("conv_1", "a")
    kept = buffer.add("conv_2", "b")

    buffer.clear("conv_1")

    assert buffer.pending_for("conv_1") == []
    assert buffer.pending_for("conv_2") == [kept]

    buffer.clear()
    assert len(buffer) == 0
