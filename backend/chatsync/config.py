"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "ChatSync"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./chatsync.db"

    # Redis (dispatch guard + detailed health)
    redis_url: str = "redis://localhost:6379/0"
    dispatch_guard_enabled: bool = False
    dispatch_guard_ttl_seconds: int = 300  # safety net if a worker dies mid-dispatch

    # Seed user created on first startup
    seed_api_key: str = "test-key-123"

    # CORS
    frontend_url: str = "http://localhost:5173"

    # Providers
    default_provider: str = "mock"
    default_model: str = "mock-echo"
    use_mock_provider: bool = True
    openai_api_key: str = ""
    openai_base_url: Optional[str] = None
    ollama_enabled: bool = False
    ollama_url: str = "http://localhost:11434"

    # Timeouts per capability class (seconds)
    health_check_timeout_seconds: float = 5.0
    chat_timeout_seconds: float = 60.0
    bulk_timeout_seconds: float = 300.0

    # Attachments
    attachment_base_url: str = "/attachments"
    max_attachment_bytes: int = 10 * 1024 * 1024

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
