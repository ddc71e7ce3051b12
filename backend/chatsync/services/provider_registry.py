"""Provider registry - named AI providers behind uniform timeouts."""
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import time

from chatsync.config import Settings
from chatsync.errors import NotFoundError, ProviderUnavailableError
from chatsync.middleware.logging import get_logger
from chatsync.services.ai_provider import AIModel, AIProvider, AIRequest, AIResponse, ValidationResult
from chatsync.services.mock_provider import MockProvider
from chatsync.services.ollama_provider import OllamaProvider
from chatsync.services.openai_provider import OpenAIProvider

logger = get_logger()


@dataclass
class ProviderTimeouts:
    """Deadlines per capability class, in seconds."""
    health: float = 5.0
    chat: float = 60.0
    bulk: float = 300.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderTimeouts":
        return cls(
            health=settings.health_check_timeout_seconds,
            chat=settings.chat_timeout_seconds,
            bulk=settings.bulk_timeout_seconds,
        )


class ProviderRegistry:
    """Registry of AI providers keyed by name."""

    def __init__(self, timeouts: Optional[ProviderTimeouts] = None):
        self._providers: Dict[str, AIProvider] = {}
        self.timeouts = timeouts or ProviderTimeouts()

    def register(self, provider: AIProvider) -> None:
        name = provider.name.lower()
        self._providers[name] = provider
        logger.info("provider_registered", provider=name, provider_class=type(provider).__name__)

    def unregister(self, name: str) -> None:
        if self._providers.pop(name.lower(), None) is not None:
            logger.info("provider_unregistered", provider=name.lower())

    def is_registered(self, name: str) -> bool:
        return name.lower() in self._providers

    def get(self, name: str) -> AIProvider:
        """
        Look up a provider by name.

        Raises:
            NotFoundError: If no provider is registered under that name
        """
        provider = self._providers.get(name.lower())
        if provider is None:
            raise NotFoundError(
                f"AI provider '{name}' not found",
                {"available": self.list_names()}
            )
        return provider

    def list_names(self) -> List[str]:
        return sorted(self._providers)

    async def send_message(self, name: str, request: AIRequest) -> AIResponse:
        """
        Dispatch a completion request under the chat timeout.

        The response metadata is tagged with ``provider`` and
        ``processing_time_ms``.

        Raises:
            NotFoundError: Unknown provider
            ProviderUnavailableError: The call exceeded the chat timeout
        """
        provider = self.get(name)
        start_time = time.monotonic()

        try:
            response = await asyncio.wait_for(provider.send_message(request), timeout=self.timeouts.chat)
        except asyncio.TimeoutError as e:
            raise ProviderUnavailableError(
                f"Provider '{name}' request timed out after {self.timeouts.chat}s",
                {"provider": name, "timeout_seconds": self.timeouts.chat}
            ) from e

        processing_time_ms = int((time.monotonic() - start_time) * 1000)
        response.metadata = {
            **response.metadata,
            "provider": provider.name,
            "processing_time_ms": processing_time_ms,
        }
        return response

    async def get_models(self, name: str) -> List[AIModel]:
        provider = self.get(name)
        try:
            return await asyncio.wait_for(provider.get_available_models(), timeout=self.timeouts.bulk)
        except asyncio.TimeoutError as e:
            raise ProviderUnavailableError(
                f"Provider '{name}' model listing timed out after {self.timeouts.bulk}s",
                {"provider": name, "timeout_seconds": self.timeouts.bulk}
            ) from e

    def validate_settings(self, name: str, settings: Dict[str, Any]) -> ValidationResult:
        return self.get(name).validate_settings(settings)

    async def is_healthy(self, name: str) -> bool:
        """Health probe under the health timeout. Never raises."""
        provider = self._providers.get(name.lower())
        if provider is None:
            return False

        try:
            return bool(await asyncio.wait_for(provider.is_healthy(), timeout=self.timeouts.health))
        except Exception as e:
            logger.warning("provider_health_check_failed", provider=name, error=str(e), error_type=type(e).__name__)
            return False

    async def describe(self) -> List[Dict[str, Any]]:
        """Name, models and health of every registered provider."""
        providers = []
        for name in self.list_names():
            healthy = await self.is_healthy(name)
            models: List[AIModel] = []
            if healthy:
                try:
                    models = await self.get_models(name)
                except Exception as e:
                    logger.warning("provider_models_unavailable", provider=name, error=str(e))
            providers.append({"name": name, "models": models, "is_healthy": healthy})
        return providers

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()


def build_registry(settings: Settings) -> ProviderRegistry:
    """Register the providers enabled by configuration."""
    registry = ProviderRegistry(ProviderTimeouts.from_settings(settings))

    if settings.use_mock_provider:
        registry.register(MockProvider())

    if settings.openai_api_key:
        registry.register(OpenAIProvider(api_key=settings.openai_api_key, base_url=settings.openai_base_url))

    if settings.ollama_enabled:
        registry.register(OllamaProvider(base_url=settings.ollama_url, timeout=settings.chat_timeout_seconds))

    if not registry.list_names():
        logger.warning("no_providers_registered")

    return registry
