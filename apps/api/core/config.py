"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # JWT Authentication - REQUIRED for token verification
    # Must be set via environment variable, never use default in production
    SECRET_KEY: str = Field(
        default=...,  # Required - no default
        description="JWT signing key. Must be cryptographically secure (32+ chars). "
                    "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )

    # Generative collaborator
    # "gemini" (default, bulk model) or "anthropic"
    RECOVERY_LLM_PROVIDER: str = Field(default="gemini")
    GOOGLE_AI_API_KEY: Optional[str] = Field(default=None)
    ANTHROPIC_API_KEY: Optional[str] = Field(default=None)
    RECOVERY_GEMINI_MODEL: str = Field(default="gemini-2.5-flash")
    RECOVERY_ANTHROPIC_MODEL: str = Field(default="claude-sonnet-4-5")
    RECOVERY_LLM_TEMPERATURE: float = Field(default=0.7, ge=0.0, le=2.0)
    RECOVERY_LLM_MAX_OUTPUT_TOKENS: int = Field(default=1000, ge=64)
    # Hard timeout on the single outbound call made per turn.
    RECOVERY_LLM_TIMEOUT_S: float = Field(default=30.0, gt=0)
    # Seconds a client should wait before resubmitting a turn after an upstream failure.
    UPSTREAM_RETRY_AFTER_S: int = Field(default=2, ge=0)

    # Exercise catalog. Defaults to the bundled services/recovery/data/exercise_catalog.json
    RECOVERY_CATALOG_PATH: Optional[str] = Field(default=None)

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    API_RELOAD: bool = Field(default=False)
    EXPOSE_API_DOCS: bool = Field(default=False)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)  # 10% of transactions
    SENTRY_PROFILES_SAMPLE_RATE: float = Field(default=0.1)


# Global settings instance
settings = Settings()
