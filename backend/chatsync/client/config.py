"""Client engine configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class ClientSettings(BaseSettings):
    """Settings for the client-side sync engine (env prefix CHATSYNC_CLIENT_)."""

    server_url: str = "http://localhost:8000"
    api_key: Optional[str] = None
    request_timeout_seconds: float = 30.0
    # Sending waits for the full AI round trip on the server
    send_timeout_seconds: float = 120.0
    health_check_timeout_seconds: float = 5.0

    local_store_path: str = "~/.chatsync/local_store.json"
    page_size: int = 100
    default_provider: str = "mock"
    default_model: str = "mock-echo"

    class Config:
        env_prefix = "CHATSYNC_CLIENT_"
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_client_settings() -> ClientSettings:
    """Get cached client settings instance."""
    return ClientSettings()
