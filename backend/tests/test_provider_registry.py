"""Tests for the provider registry."""
import itertools
from unittest.mock import patch

import pytest

from chatsync.config import Settings
from chatsync.errors import NotFoundError, ProviderUnavailableError
from chatsync.services.ai_provider import AIRequest, ChatTurn
from chatsync.services.mock_provider import MockProvider
from chatsync.services.provider_registry import ProviderRegistry, ProviderTimeouts, build_registry


def make_request(model="mock-echo", content="hello"):
    return AIRequest(model=model, messages=[ChatTurn(role="user", content=content)])


def test_register_and_lookup_is_case_insensitive():
    registry = ProviderRegistry()
    provider = MockProvider()

    registry.register(provider)

    assert registry.get("MOCK") is provider
    assert registry.is_registered("Mock")
    assert registry.list_names() == ["mock"]


def test_unknown_provider_raises_not_found():
    registry = ProviderRegistry()

    with pytest.raises(NotFoundError):
        registry.get("openai")


def test_unregister():
    registry = ProviderRegistry()
    registry.register(MockProvider())

    registry.unregister("mock")

    assert registry.list_names() == []


@pytest.mark.asyncio
async def test_send_message_tags_metadata(registry):
    """Responses carry the provider name and processing time."""
    response = await registry.send_message("mock", make_request(content="ping"))

    assert response.content == "Echo: ping"
    assert response.metadata["provider"] == "mock"
    assert response.metadata["processing_time_ms"] >= 0


@pytest.mark.asyncio
async def test_processing_time_ignores_wall_clock_jumps(registry):
    """A wall clock stepping backwards mid-request does not skew the timing."""
    wall_clock = itertools.count(start=1_000_000, step=-3600)

    with patch("time.time", side_effect=lambda: float(next(wall_clock))):
        response = await registry.send_message("mock", make_request(content="ping"))

    assert response.metadata["processing_time_ms"] >= 0


@pytest.mark.asyncio
async def test_send_message_times_out():
    registry = ProviderRegistry(ProviderTimeouts(chat=0.05))
    registry.register(MockProvider(delay_ms=500))

    with pytest.raises(ProviderUnavailableError) as exc_info:
        await registry.send_message("mock", make_request())

    assert "timed out" in exc_info.value.message


@pytest.mark.asyncio
async def test_provider_exception_propagates(registry, mock_provider):
    mock_provider.fail_with = "Connection refused"

    with pytest.raises(RuntimeError):
        await registry.send_message("mock", make_request())


@pytest.mark.asyncio
async def test_is_healthy_never_raises():
    registry = ProviderRegistry()
    registry.register(MockProvider(healthy=False))

    assert await registry.is_healthy("mock") is False
    assert await registry.is_healthy("missing") is False


@pytest.mark.asyncio
async def test_describe_lists_models_for_healthy_providers(registry):
    providers = await registry.describe()

    assert providers[0]["name"] == "mock"
    assert providers[0]["is_healthy"] is True
    assert [m.name for m in providers[0]["models"]] == ["mock-echo", "mock-fail"]


def test_validate_settings_bounds(registry):
    result = registry.validate_settings("mock", {"temperature": 3.5, "top_k": 1.5, "style": "terse"})

    assert result.is_valid is False
    assert any("temperature" in e for e in result.errors)
    assert any("top_k" in e for e in result.errors)
    assert any("style" in w for w in result.warnings)


def test_build_registry_from_settings():
    settings = Settings(use_mock_provider=True, openai_api_key="", ollama_enabled=True)

    registry = build_registry(settings)

    assert registry.list_names() == ["mock", "ollama"]
    assert registry.timeouts.chat == settings.chat_timeout_seconds
