"""
Mock provider for offline development and tests.

Replies deterministically without any network access. Enabled with
USE_MOCK_PROVIDER=true.
"""
import asyncio
from typing import List, Optional

from chatsync.services.ai_provider import AIModel, AIProvider, AIRequest, AIResponse

MODELS = [
    AIModel(
        name="mock-echo",
        display_name="Mock Echo",
        description="Echoes the last user message",
        max_tokens=4096,
        supported_features=["chat"],
    ),
    AIModel(
        name="mock-fail",
        display_name="Mock Failure",
        description="Always fails; exercises the failure path",
        max_tokens=4096,
        supported_features=["chat"],
    ),
]


class MockProvider(AIProvider):
    """Deterministic provider with configurable latency and failure."""

    name = "mock"

    def __init__(self, delay_ms: int = 0, fail_with: Optional[str] = None, healthy: bool = True):
        self.delay_ms = delay_ms
        self.fail_with = fail_with
        self.healthy = healthy
        self.requests: List[AIRequest] = []

    async def send_message(self, request: AIRequest) -> AIResponse:
        self.requests.append(request)

        if self.delay_ms > 0:
            await asyncio.sleep(self.delay_ms / 1000)

        if self.fail_with:
            raise RuntimeError(self.fail_with)
        if request.model == "mock-fail":
            return AIResponse(error="Mock provider failure", metadata={"model": request.model})

        last_user = next(
            (turn.content for turn in reversed(request.messages) if turn.role == "user"),
            ""
        )
        content = f"Echo: {last_user}"
        tokens_in = sum(len(turn.content.split()) for turn in request.messages)
        tokens_out = len(content.split())

        return AIResponse(
            content=content,
            metadata={
                "model": request.model,
                "tokens_in": tokens_in,
                "tokens_out": tokens_out,
                "tokens_used": tokens_in + tokens_out,
                "finish_reason": "stop",
                "temperature": request.settings.get("temperature"),
            }
        )

    async def get_available_models(self) -> List[AIModel]:
        return list(MODELS)

    async def is_healthy(self) -> bool:
        return self.healthy
