"""AI provider capability shared by every backend the registry can dispatch to."""
from abc import ABC, abstractmethod
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from chatsync.schemas.common import CamelModel


class ChatTurn(BaseModel):
    role: str
    content: str


class AIRequest(BaseModel):
    """Prompt plus routing context for a single completion."""

    model: str
    messages: List[ChatTurn]
    settings: Dict[str, Any] = Field(default_factory=dict)
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None


class AIResponse(BaseModel):
    """Completion result. A non-empty ``error`` marks a failed call."""

    content: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class AIModel(CamelModel):
    name: str
    display_name: str
    description: Optional[str] = None
    max_tokens: Optional[int] = None
    supported_features: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ValidationResult(CamelModel):
    is_valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# (min, max, integer_only)
NUMERIC_SETTINGS = {
    "temperature": (0.0, 2.0, False),
    "top_p": (0.0, 1.0, False),
    "top_k": (1, None, True),
    "max_tokens": (1, None, True),
    "repeat_penalty": (0.0, None, False),
    "seed": (None, None, True),
}


class AIProvider(ABC):
    """Base class for AI providers.

    Subclasses set ``name`` and ``supported_settings`` and implement the
    network calls. ``validate_settings`` covers the numeric knobs common to
    all providers; unknown keys only produce warnings.
    """

    name: str = ""
    supported_settings: frozenset = frozenset(NUMERIC_SETTINGS)

    @abstractmethod
    async def send_message(self, request: AIRequest) -> AIResponse:
        ...

    @abstractmethod
    async def get_available_models(self) -> List[AIModel]:
        ...

    @abstractmethod
    async def is_healthy(self) -> bool:
        ...

    def validate_settings(self, settings: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        for key, value in (settings or {}).items():
            if key not in self.supported_settings:
                result.warnings.append(f"Setting '{key}' is not supported by provider '{self.name}'")
                continue

            bounds = NUMERIC_SETTINGS.get(key)
            if bounds is None:
                continue

            low, high, integer_only = bounds
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                result.errors.append(f"Setting '{key}' must be a number")
                continue
            if integer_only and not isinstance(value, int):
                result.errors.append(f"Setting '{key}' must be an integer")
                continue
            if low is not None and value < low:
                result.errors.append(f"Setting '{key}' must be >= {low}")
            if high is not None and value > high:
                result.errors.append(f"Setting '{key}' must be <= {high}")

        result.is_valid = not result.errors
        return result

    async def close(self) -> None:
        """Release network resources. No-op by default."""
