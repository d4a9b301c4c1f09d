"""Application configuration with Pydantic Settings.

This module provides centralized configuration management using pydantic-settings.
Settings are loaded from environment variables and .env files.

Examples:
    >>> from medassist.config import get_settings
    >>> settings = get_settings()
    >>> settings.COOLDOWN_SECONDS
    60.0

    >>> settings.configured_providers()
    [<ProviderType.GOOGLE: 'google'>, <ProviderType.OPENROUTER: 'openrouter'>]

Tests:
    - tests/unit/test_config.py::TestSettings
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderType(str, Enum):
    """Supported LLM providers."""

    GOOGLE = "google"
    OPENROUTER = "openrouter"


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Application settings with provider configuration.

    Settings are loaded from environment variables and .env file.
    At least one provider API key (GOOGLE_API_KEY or OPENROUTER_API_KEY) is required.

    Attributes:
        GOOGLE_API_KEY: Google AI API key for Gemini models
        OPENROUTER_API_KEY: OpenRouter API key for multi-model access
        COOLDOWN_SECONDS: How long a rate-limited model is skipped
        PROVIDER_TIMEOUT_SECONDS: Per-call timeout handed to provider clients
        GENERATION_DEADLINE_SECONDS: Budget for a whole fallback chain (None disables)
        MAX_CHAT_SESSIONS: Maximum chat sessions kept in memory
        DEFAULT_CHAT_SESSION: Session key used when the caller sends none
        MODEL_CHAIN: Optional comma-separated candidate names, in fallback order
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Provider API Keys
    GOOGLE_API_KEY: str | None = Field(
        default=None,
        description="Google AI API key",
    )
    OPENROUTER_API_KEY: str | None = Field(
        default=None,
        description="OpenRouter API key",
    )
    OPENROUTER_BASE_URL: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenRouter API base URL",
    )

    # Fallback chain
    MODEL_CHAIN: str | None = Field(
        default=None,
        description="Comma-separated candidate names overriding the default chain",
    )
    COOLDOWN_SECONDS: float = Field(
        default=60.0,
        gt=0,
        description="Seconds a model is skipped after a rate-limit failure",
    )
    PROVIDER_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single provider call",
    )
    GENERATION_DEADLINE_SECONDS: float | None = Field(
        default=90.0,
        description="Overall budget for one fallback chain (None or 0 disables)",
    )

    # Chat sessions
    MAX_CHAT_SESSIONS: int = Field(
        default=1000,
        ge=1,
        description="Maximum chat sessions kept in memory",
    )
    DEFAULT_CHAT_SESSION: str = Field(
        default="default",
        min_length=1,
        description="Session key used when the caller does not send one",
    )

    # Application Settings
    ENVIRONMENT: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    DEBUG: bool = Field(
        default=True,
        description="Enable debug mode",
    )

    @field_validator("GENERATION_DEADLINE_SECONDS")
    @classmethod
    def normalize_deadline(cls, v: float | None) -> float | None:
        """Treat a zero or negative deadline as disabled."""
        if v is not None and v <= 0:
            return None
        return v

    @model_validator(mode="after")
    def validate_providers(self) -> "Settings":
        """Ensure at least one provider API key is configured."""
        if not self.GOOGLE_API_KEY and not self.OPENROUTER_API_KEY:
            raise ValueError(
                "At least one provider API key is required "
                "(GOOGLE_API_KEY or OPENROUTER_API_KEY)"
            )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == Environment.PRODUCTION

    @property
    def model_chain(self) -> list[str]:
        """Candidate names from MODEL_CHAIN, empty when unset."""
        if not self.MODEL_CHAIN:
            return []
        return [name.strip() for name in self.MODEL_CHAIN.split(",") if name.strip()]

    def has_provider(self, provider: ProviderType) -> bool:
        """Check if a specific provider is configured.

        Args:
            provider: The provider to check.

        Returns:
            bool: True if the provider's API key is configured.
        """
        if provider == ProviderType.GOOGLE:
            return bool(self.GOOGLE_API_KEY)
        elif provider == ProviderType.OPENROUTER:
            return bool(self.OPENROUTER_API_KEY)
        return False

    def configured_providers(self) -> list[ProviderType]:
        """List providers with an API key, in enum order."""
        return [p for p in ProviderType if self.has_provider(p)]

    def get_api_key(self, provider: ProviderType) -> str:
        """Get API key for a specific provider.

        Args:
            provider: The provider to get the key for.

        Returns:
            str: The API key.

        Raises:
            ValueError: If the provider's API key is not configured.
        """
        if provider == ProviderType.GOOGLE:
            if not self.GOOGLE_API_KEY:
                raise ValueError("GOOGLE_API_KEY not configured")
            return self.GOOGLE_API_KEY
        elif provider == ProviderType.OPENROUTER:
            if not self.OPENROUTER_API_KEY:
                raise ValueError("OPENROUTER_API_KEY not configured")
            return self.OPENROUTER_API_KEY
        raise ValueError(f"Unknown provider: {provider}")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: The application settings.
    """
    return Settings()
