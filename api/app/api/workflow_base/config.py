"""
Base configuration class for the flow system.
Provides abstract interface for flow-specific configurations.
"""

from abc import ABC, abstractmethod

from pydantic_settings import BaseSettings

from .models import Step


class BaseWorkflowConfig(ABC, BaseSettings):
    """Abstract base class for flow configuration."""

    # Common configuration that all flows can override
    app_name: str = "Registration Flow"

    @abstractmethod
    def get_variants(self) -> dict[str, list[Step]]:
        """Return the ordered step catalog for each named flow variant."""

    @abstractmethod
    def get_rate_limits(self) -> dict[str, str]:
        """Return rate limiting configuration."""

    def get_error_messages(self) -> dict[str, str]:
        """Return custom error messages (can be overridden)."""
        return {
            "session_expired": "Your session has expired. Please start over.",
            "validation_failed": "Please check your input and try again.",
            "rate_limit": "Too many requests. Please wait a moment.",
            "server_error": "An unexpected error occurred. Please try again.",
        }

    class Config:
        env_file = ".env"
        env_prefix = "WORKFLOW_"
        case_sensitive = False
        extra = "ignore"
