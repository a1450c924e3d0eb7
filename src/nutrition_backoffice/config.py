"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    backend_base_url: str = "https://foodsync-api.vercel.app"
    backend_basic_auth: str
    backend_bearer_token: str | None = None
    admin_token: str
    request_timeout_seconds: float = 15
    day_cache_ttl_seconds: int = 30
    item_cache_ttl_seconds: int = 3600
    debug: bool = False
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
