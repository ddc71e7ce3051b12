"""OpenAI chat completions provider."""
import openai
import structlog
from typing import Any, Dict, List, Optional
import time

from chatsync.services.ai_provider import AIModel, AIProvider, AIRequest, AIResponse

logger = structlog.get_logger()

# USD per 1K tokens
PRICING = {
    "gpt-3.5-turbo": {"input": 0.0005, "output": 0.0015},
    "gpt-4": {"input": 0.03, "output": 0.06},
    "gpt-4-turbo": {"input": 0.01, "output": 0.03},
    "gpt-4o": {"input": 0.005, "output": 0.015},
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
}


class OpenAIProvider(AIProvider):
    """Non-streaming completions through the OpenAI SDK."""

    name = "openai"
    supported_settings = frozenset({"temperature", "top_p", "max_tokens", "seed"})

    def __init__(self, api_key: str, base_url: Optional[str] = None, client: Optional[openai.AsyncOpenAI] = None):
        self.client = client or openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def send_message(self, request: AIRequest) -> AIResponse:
        """
        Get a single completion for the prompt.

        Returns:
            AIResponse with content and metadata (tokens_used, tokens_in,
            tokens_out, cost, finish_reason, model)
        """
        start_time = time.monotonic()
        params: Dict[str, Any] = {
            key: value
            for key, value in request.settings.items()
            if key in self.supported_settings
        }

        response = await self.client.chat.completions.create(
            model=request.model,
            messages=[turn.model_dump() for turn in request.messages],
            **params
        )

        latency_ms = int((time.monotonic() - start_time) * 1000)
        choice = response.choices[0]
        tokens_in = response.usage.prompt_tokens if response.usage else 0
        tokens_out = response.usage.completion_tokens if response.usage else 0

        return AIResponse(
            content=choice.message.content or "",
            metadata={
                "model": response.model or request.model,
                "tokens_in": tokens_in,
                "tokens_out": tokens_out,
                "tokens_used": tokens_in + tokens_out,
                "cost": self._calculate_cost(request.model, tokens_in, tokens_out),
                "finish_reason": choice.finish_reason,
                "latency_ms": latency_ms,
                "temperature": request.settings.get("temperature"),
            }
        )

    async def get_available_models(self) -> List[AIModel]:
        page = await self.client.models.list()
        return [
            AIModel(
                name=model.id,
                display_name=model.id,
                supported_features=["chat"],
                metadata={"owned_by": getattr(model, "owned_by", None)},
            )
            for model in page.data
            if model.id.startswith("gpt")
        ]

    async def is_healthy(self) -> bool:
        try:
            await self.client.models.list()
            return True
        except openai.OpenAIError as e:
            logger.warning("openai_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        await self.client.close()

    def _calculate_cost(self, model: str, tokens_in: int, tokens_out: int) -> float:
        """Estimated cost in USD, falling back to gpt-3.5-turbo pricing."""
        model_pricing = PRICING.get(model, PRICING["gpt-3.5-turbo"])

        cost_in = (tokens_in / 1000) * model_pricing["input"]
        cost_out = (tokens_out / 1000) * model_pricing["output"]

        return round(cost_in + cost_out, 6)
