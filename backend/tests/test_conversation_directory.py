"""Tests for the conversation directory."""
from datetime import datetime, timedelta

import pytest

from chatsync.errors import ForbiddenError, NotFoundError, ValidationError


def test_create_conversation(directory, user):
    """New conversations are active with zeroed counters."""
    conversation = directory.create(user.id, "  Trip  ", "mock", "mock-echo", settings={"temperature": 0.2})

    assert conversation.id.startswith("conv_")
    assert conversation.title == "Trip"
    assert conversation.message_count == 0
    assert conversation.is_active is True
    assert conversation.settings == {"temperature": 0.2}


def test_create_rejects_blank_title(directory, user):
    with pytest.raises(ValidationError):
        directory.create(user.id, "   ", "mock", "mock-echo")


def test_validate_ownership_allows_owner(directory, user, conversation):
    assert directory.validate_ownership(conversation.id, user.id).id == conversation.id


def test_validate_ownership_forbids_other_user(directory, other_user, conversation):
    """Another user's conversation raises Forbidden, not NotFound."""
    with pytest.raises(ForbiddenError):
        directory.validate_ownership(conversation.id, other_user.id)


def test_validate_ownership_unknown_conversation(directory, user):
    with pytest.raises(NotFoundError):
        directory.validate_ownership("conv_missing", user.id)


def test_find_by_user_only_returns_own(directory, user, other_user):
    directory.create(user.id, "Mine", "mock", "mock-echo")
    directory.create(other_user.id, "Theirs", "mock", "mock-echo")

    result = directory.find_by_user(user.id)

    assert [c.title for c in result.data] == ["Mine"]
    assert result.pagination.total == 1


def test_find_by_user_searches_title_and_model(directory, user):
    directory.create(user.id, "Python questions", "mock", "mock-echo")
    directory.create(user.id, "Recipes", "ollama", "llama3")
    directory.create(user.id, "Travel", "mock", "mock-echo")

    by_title = directory.find_by_user(user.id, search="PYTHON")
    by_model = directory.find_by_user(user.id, search="llama")

    assert [c.title for c in by_title.data] == ["Python questions"]
    assert [c.title for c in by_model.data] == ["Recipes"]


def test_find_by_user_sorting(directory, user):
    for title in ("b", "c", "a"):
        directory.create(user.id, title, "mock", "mock-echo")

    result = directory.find_by_user(user.id, sort_by="title", sort_order="asc")

    assert [c.title for c in result.data] == ["a", "b", "c"]


def test_find_by_user_rejects_unknown_sort(directory, user):
    with pytest.raises(ValidationError):
        directory.find_by_user(user.id, sort_by="owner")


def test_update_fields(directory, conversation):
    updated = directory.update(conversation.id, {"title": "Renamed", "metadata": {"pinned": True}})

    assert updated.title == "Renamed"
    assert updated.extra_data == {"pinned": True}


def test_update_cannot_change_owner(directory, other_user, conversation):
    """The owner is fixed at creation."""
    with pytest.raises(ValidationError):
        directory.update(conversation.id, {"user_id": other_user.id})


def test_update_unknown_conversation(directory):
    with pytest.raises(NotFoundError):
        directory.update("conv_missing", {"title": "x"})


def test_record_activity_increments_and_touches(directory, conversation):
    before = conversation.last_activity

    updated = directory.record_activity(conversation.id, increment=2)

    assert updated.message_count == 2
    assert updated.last_activity >= before


def test_last_activity_never_moves_backwards(directory, db, conversation):
    future = datetime.utcnow() + timedelta(hours=1)
    conversation.last_activity = future
    db.commit()

    updated = directory.touch(conversation.id)

    assert updated.last_activity == future


def test_increment_message_count(directory, conversation):
    directory.increment_message_count(conversation.id)
    updated = directory.increment_message_count(conversation.id, delta=-1)

    assert updated.message_count == 0


def test_delete(directory, conversation):
    directory.delete(conversation.id)

    assert directory.find_by_id(conversation.id) is None
