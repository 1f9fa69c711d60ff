"""
Application settings.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable validation."""

    session_secret_key: str = "dev-session-secret-change-me"
    debug: bool = False
    app_name: str = "Program Registration"
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Backend registration/payment API; the token is injected into the clients
    registration_api_base_url: str = "http://localhost:3001"
    registration_api_token: str | None = None
    request_timeout_seconds: float = 30.0

    session_timeout_minutes: int = 30

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
