"""Tests for the Ollama and OpenAI provider adapters."""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from chatsync.errors import FailureCategory, classify_failure
from chatsync.services.ai_provider import AIRequest, ChatTurn
from chatsync.services.ollama_provider import OllamaProvider, format_duration, tokens_per_second
from chatsync.services.openai_provider import OpenAIProvider


def make_request(model="llama3", settings=None):
    return AIRequest(
        model=model,
        messages=[ChatTurn(role="system", content="Be brief."), ChatTurn(role="user", content="Hi")],
        settings=settings or {},
    )


def ollama_handler(request):
    if request.url.path == "/api/tags":
        return httpx.Response(200, json={"models": [
            {"name": "llama3:8b", "size": 1, "details": {"family": "llama", "parameter_size": "8B"}},
        ]})

    body = json.loads(request.content)
    if body["model"] == "missing":
        return httpx.Response(404, json={"error": "model not found"})
    return httpx.Response(200, json={
        "model": body["model"],
        "message": {"role": "assistant", "content": "Hello!"},
        "done": True,
        "prompt_eval_count": 10,
        "eval_count": 5,
        "total_duration": 2_500_000_000,
        "eval_duration": 1_000_000_000,
    })


@pytest.mark.asyncio
async def test_ollama_send_message():
    provider = OllamaProvider(transport=httpx.MockTransport(ollama_handler))

    response = await provider.send_message(make_request(settings={"temperature": 0.2, "max_tokens": 50}))

    assert response.content == "Hello!"
    assert response.metadata["tokens_used"] == 15
    assert response.metadata["total_duration_ms"] == 2500
    assert response.metadata["tokens_per_second"] == 5
    assert response.metadata["finish_reason"] == "stop"
    await provider.close()


@pytest.mark.asyncio
async def test_ollama_maps_settings_to_options():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"message": {"content": "ok"}, "done": True})

    provider = OllamaProvider(transport=httpx.MockTransport(handler))
    await provider.send_message(make_request(settings={"max_tokens": 50, "style": "terse"}))

    assert seen["stream"] is False
    assert seen["options"] == {"num_predict": 50}
    assert seen["messages"][0] == {"role": "system", "content": "Be brief."}


@pytest.mark.asyncio
async def test_ollama_missing_model_is_categorized():
    provider = OllamaProvider(transport=httpx.MockTransport(ollama_handler))

    with pytest.raises(LookupError) as exc_info:
        await provider.send_message(make_request(model="missing"))

    assert classify_failure(exc_info.value) == FailureCategory.MODEL_NOT_FOUND


@pytest.mark.asyncio
async def test_ollama_unreachable_is_categorized():
    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    provider = OllamaProvider(transport=httpx.MockTransport(refuse))

    with pytest.raises(ConnectionRefusedError) as exc_info:
        await provider.send_message(make_request())

    assert classify_failure(exc_info.value) == FailureCategory.UNAVAILABLE
    assert await provider.is_healthy() is False


@pytest.mark.asyncio
async def test_ollama_models_and_health():
    provider = OllamaProvider(transport=httpx.MockTransport(ollama_handler))

    models = await provider.get_available_models()

    assert [m.name for m in models] == ["llama3:8b"]
    assert models[0].display_name == "Llama3"
    assert models[0].metadata["parameter_size"] == "8B"
    assert await provider.is_healthy() is True


def test_duration_helpers():
    assert format_duration(None) is None
    assert format_duration(1_500_000) == 2
    assert tokens_per_second(0, 10) is None
    assert tokens_per_second(20, 2_000_000_000) == 10


def test_ollama_rejects_out_of_range_settings():
    result = OllamaProvider().validate_settings({"temperature": -1, "num_ctx": 4096})

    assert result.is_valid is False
    assert result.warnings == []


@pytest.mark.asyncio
async def test_openai_send_message_reports_usage_and_cost():
    completion = SimpleNamespace(
        model="gpt-4o-mini",
        choices=[SimpleNamespace(message=SimpleNamespace(content="Hi there"), finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=1000, completion_tokens=1000),
    )
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion)
    provider = OpenAIProvider(api_key="sk-test", client=client)

    response = await provider.send_message(make_request(model="gpt-4o-mini", settings={"temperature": 0.1, "top_k": 5}))

    assert response.content == "Hi there"
    assert response.metadata["tokens_used"] == 2000
    assert response.metadata["cost"] == 0.00075
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["temperature"] == 0.1
    assert "top_k" not in kwargs


@pytest.mark.asyncio
async def test_openai_lists_only_chat_models():
    client = MagicMock()
    client.models.list = AsyncMock(return_value=SimpleNamespace(data=[
        SimpleNamespace(id="gpt-4o", owned_by="openai"),
        SimpleNamespace(id="text-embedding-3-small", owned_by="openai"),
    ]))
    provider = OpenAIProvider(api_key="sk-test", client=client)

    models = await provider.get_available_models()

    assert [m.name for m in models] == ["gpt-4o"]
    assert await provider.is_healthy() is True
