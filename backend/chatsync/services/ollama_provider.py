"""
Ollama provider - local models served over the Ollama HTTP API.

Uses /api/chat for non-streaming completions and /api/tags for model
listing and health checks.
"""
import httpx
import structlog
from typing import Any, Dict, List, Optional

from chatsync.services.ai_provider import AIModel, AIProvider, AIRequest, AIResponse

logger = structlog.get_logger()

DEFAULT_URL = "http://localhost:11434"

# Generic setting name -> Ollama option name
OPTION_NAMES = {
    "temperature": "temperature",
    "top_p": "top_p",
    "top_k": "top_k",
    "num_ctx": "num_ctx",
    "repeat_penalty": "repeat_penalty",
    "seed": "seed",
    "max_tokens": "num_predict",
}


def format_duration(nanoseconds: Optional[int]) -> Optional[int]:
    """Ollama reports durations in nanoseconds."""
    if not nanoseconds:
        return None
    return round(nanoseconds / 1_000_000)


def tokens_per_second(eval_count: Optional[int], eval_duration: Optional[int]) -> Optional[int]:
    if not eval_count or not eval_duration:
        return None
    return round(eval_count / eval_duration * 1_000_000_000)


class OllamaProvider(AIProvider):
    """Client for a local Ollama server."""

    name = "ollama"
    supported_settings = frozenset(OPTION_NAMES)

    def __init__(self, base_url: str = DEFAULT_URL, timeout: float = 60.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            base_url: Ollama server URL
            timeout: Default request timeout in seconds; the registry applies
                its own per-call deadline on top of this
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_options(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        return {
            OPTION_NAMES[key]: value
            for key, value in settings.items()
            if key in OPTION_NAMES
        }

    async def send_message(self, request: AIRequest) -> AIResponse:
        client = await self._get_client()
        payload = {
            "model": request.model,
            "messages": [turn.model_dump() for turn in request.messages],
            "stream": False,
            "options": self._build_options(request.settings),
        }

        try:
            response = await client.post("/api/chat", json=payload)
        except httpx.ConnectError as e:
            raise ConnectionRefusedError(
                f"Connection refused: Ollama at {self.base_url} is not reachable"
            ) from e

        if response.status_code == 404:
            raise LookupError(f"Model '{request.model}' not found")
        response.raise_for_status()

        data = response.json()
        if data.get("error"):
            return AIResponse(error=str(data["error"]), metadata={"model": request.model})

        prompt_tokens = data.get("prompt_eval_count") or 0
        completion_tokens = data.get("eval_count") or 0

        return AIResponse(
            content=(data.get("message") or {}).get("content", ""),
            metadata={
                "model": data.get("model", request.model),
                "tokens_in": prompt_tokens,
                "tokens_out": completion_tokens,
                "tokens_used": prompt_tokens + completion_tokens,
                "total_duration_ms": format_duration(data.get("total_duration")),
                "tokens_per_second": tokens_per_second(
                    data.get("eval_count"), data.get("eval_duration")
                ),
                "finish_reason": data.get("done_reason") or ("stop" if data.get("done") else None),
                "temperature": request.settings.get("temperature"),
            }
        )

    async def get_available_models(self) -> List[AIModel]:
        client = await self._get_client()
        response = await client.get("/api/tags")
        response.raise_for_status()

        models = []
        for entry in response.json().get("models", []):
            details = entry.get("details") or {}
            models.append(AIModel(
                name=entry["name"],
                display_name=entry["name"].split(":")[0].title(),
                description=details.get("family"),
                supported_features=["chat"],
                metadata={
                    "size": entry.get("size"),
                    "parameter_size": details.get("parameter_size"),
                    "quantization_level": details.get("quantization_level"),
                    "modified_at": entry.get("modified_at"),
                },
            ))
        return models

    async def is_healthy(self) -> bool:
        try:
            client = await self._get_client()
            response = await client.get("/api/tags")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("ollama_health_check_failed", base_url=self.base_url, error=str(e))
            return False
