"""HTTP API tests against the in-process app."""
import httpx
import pytest

OTHER_HEADERS = {"x-api-key": "other-api-key"}


async def create_conversation(client, **overrides):
    body = {"title": "API test", "provider": "mock", "model": "mock-echo", "systemPrompt": "Be brief."}
    body.update(overrides)
    response = await client.post("/conversations", json=body)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "chatsync-backend"}


@pytest.mark.asyncio
async def test_detailed_health_reports_providers(client):
    response = await client.get("/health/detailed")

    data = response.json()
    assert data["checks"]["database"] == "healthy"
    assert data["providers"] == {"mock": "healthy"}


@pytest.mark.asyncio
async def test_responses_carry_trace_id(client):
    response = await client.get("/health", headers={"X-Trace-ID": "trace-123"})

    assert response.headers["X-Trace-ID"] == "trace-123"


@pytest.mark.asyncio
async def test_create_conversation_uses_camel_case(client):
    data = await create_conversation(client, settings={"temperature": 0.3})

    assert data["id"].startswith("conv_")
    assert data["systemPrompt"] == "Be brief."
    assert data["messageCount"] == 0
    assert data["isActive"] is True
    assert data["settings"] == {"temperature": 0.3}
    assert "lastActivity" in data


@pytest.mark.asyncio
async def test_create_conversation_unknown_provider(client):
    response = await client.post(
        "/conversations",
        json={"title": "x", "provider": "nope", "model": "m"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_list_conversations_paginates(client):
    for i in range(3):
        await create_conversation(client, title=f"Conversation {i}")

    response = await client.get("/conversations", params={"limit": 2, "sortBy": "title", "sortOrder": "asc"})

    data = response.json()
    assert [c["title"] for c in data["data"]] == ["Conversation 0", "Conversation 1"]
    assert data["pagination"]["total"] == 3
    assert data["pagination"]["totalPages"] == 2
    assert data["pagination"]["hasNext"] is True


@pytest.mark.asyncio
async def test_other_user_gets_403(app, client, other_user):
    conversation = await create_conversation(client)

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
        headers=OTHER_HEADERS,
    ) as other:
        response = await other.get(f"/conversations/{conversation['id']}")

    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


@pytest.mark.asyncio
async def test_unknown_conversation_is_404(client):
    response = await client.get("/conversations/conv_missing")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_send_and_list_messages(client):
    conversation = await create_conversation(client)

    sent = await client.post(f"/conversations/{conversation['id']}/messages", json={"content": "Hello"})
    listed = await client.get(f"/conversations/{conversation['id']}/messages")

    assert sent.status_code == 201
    assert sent.json()["role"] == "user"
    assert sent.json()["sequenceNumber"] == 1
    messages = listed.json()["data"]
    assert [(m["role"], m["status"]) for m in messages] == [("user", "sent"), ("assistant", "sent")]
    assert messages[1]["content"] == "Echo: Hello"
    assert messages[1]["metadata"]["provider"] == "mock"


@pytest.mark.asyncio
async def test_provider_failure_returns_503_and_records_failure(client, mock_provider):
    conversation = await create_conversation(client)
    mock_provider.fail_with = "Connection refused"

    response = await client.post(f"/conversations/{conversation['id']}/messages", json={"content": "Hello"})
    listed = await client.get(f"/conversations/{conversation['id']}/messages")

    assert response.status_code == 503
    assert response.json()["error"] == "provider_unavailable"
    messages = listed.json()["data"]
    assert [(m["role"], m["status"]) for m in messages] == [("user", "sent"), ("assistant", "failed")]
    assert messages[1]["error"] == "Connection refused"


@pytest.mark.asyncio
async def test_search_messages(client):
    conversation = await create_conversation(client)
    await client.post(f"/conversations/{conversation['id']}/messages", json={"content": "Hello World"})

    response = await client.get(f"/conversations/{conversation['id']}/messages/search", params={"q": "hello"})

    assert response.status_code == 200
    assert len(response.json()) == 2


@pytest.mark.asyncio
async def test_update_and_delete_conversation(client):
    conversation = await create_conversation(client)
    path = f"/conversations/{conversation['id']}"

    updated = await client.patch(path, json={"title": "Renamed"})
    deleted = await client.delete(path)
    missing = await client.get(path)

    assert updated.json()["title"] == "Renamed"
    assert deleted.status_code == 204
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_stats(client):
    conversation = await create_conversation(client)
    await client.post(f"/conversations/{conversation['id']}/messages", json={"content": "Hi"})

    response = await client.get(f"/conversations/{conversation['id']}/stats")

    data = response.json()
    assert data["messageCount"] == 2
    assert data["tokensUsed"] > 0


@pytest.mark.asyncio
async def test_providers(client):
    response = await client.get("/providers")

    data = response.json()
    assert data[0]["name"] == "mock"
    assert data[0]["isHealthy"] is True
    assert [m["name"] for m in data[0]["models"]] == ["mock-echo", "mock-fail"]
