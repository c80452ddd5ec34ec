"""
Application Settings.

Centralized configuration using Pydantic Settings with environment variable loading.
All settings are validated at startup - invalid values will raise an error.

Production Mode:
    When app_env="production", additional validations apply:
    - api_key_enabled must be True
    - debug must be False
    - cors_allowed_origins cannot be ["*"]
    - gateway_mode must be "live"
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Anthropic (Claude LLM)
    # -------------------------------------------------------------------------
    anthropic_api_key: SecretStr | None = Field(
        default=None, description="Anthropic API key for Claude"
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model used to draft review replies",
    )
    generation_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Upper bound for a single draft generation call",
    )
    allow_fallback_only: bool = Field(
        default=False,
        description="Allow automation to start without an LLM key (canned replies only)",
    )

    # -------------------------------------------------------------------------
    # Google Business Profile
    # -------------------------------------------------------------------------
    gateway_mode: Literal["mock", "live"] = Field(
        default="mock",
        description="Review gateway implementation: in-memory mock or live Google API",
    )
    google_client_id: str | None = Field(default=None, description="OAuth client ID")
    google_client_secret: SecretStr | None = Field(
        default=None, description="OAuth client secret"
    )
    google_refresh_token: SecretStr | None = Field(
        default=None, description="OAuth refresh token with business.manage scope"
    )
    gateway_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for Google Business Profile requests",
    )
    google_webhook_secret: SecretStr | None = Field(
        default=None,
        description="Shared secret for verifying X-Goog-Signature on webhooks",
    )

    # -------------------------------------------------------------------------
    # Automation Timing
    # -------------------------------------------------------------------------
    poll_interval_seconds: int = Field(
        default=300,
        ge=10,
        description="How often the polling scheduler lists reviews (default 5 minutes)",
    )
    response_deadline_seconds: int = Field(
        default=600,
        gt=0,
        description="Target time from review creation to posted reply (default 10 minutes)",
    )
    urgent_window_seconds: int = Field(
        default=120,
        ge=0,
        description="Reviews within this window of the deadline are answered immediately",
    )
    natural_delay_min_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Lower bound of the randomized delay before replying",
    )
    natural_delay_max_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Upper bound of the randomized delay before replying",
    )
    max_concurrent_reviews: int = Field(
        default=10,
        ge=1,
        description="Maximum reviews drafted/posted at the same time",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    api_host: str = Field(default="0.0.0.0", description="Bind address")
    api_port: int = Field(default=8000, description="Bind port")

    # -------------------------------------------------------------------------
    # Security Settings
    # -------------------------------------------------------------------------
    api_key: SecretStr | None = Field(
        default=None,
        description="API key for authentication. If set, all requests require X-API-Key header.",
    )
    api_key_enabled: bool = Field(
        default=False,
        description="Enable API key authentication. Set True for production.",
    )

    # -------------------------------------------------------------------------
    # CORS Settings
    # -------------------------------------------------------------------------
    cors_allowed_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins. Use ['*'] for development only.",
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Allow credentials in CORS requests",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @model_validator(mode="after")
    def validate_timing(self) -> "Settings":
        """Delay bounds must be ordered and the urgent window must fit the deadline."""
        if self.natural_delay_min_seconds > self.natural_delay_max_seconds:
            raise ValueError(
                "natural_delay_min_seconds cannot exceed natural_delay_max_seconds"
            )
        if self.urgent_window_seconds > self.response_deadline_seconds:
            raise ValueError(
                "urgent_window_seconds cannot exceed response_deadline_seconds"
            )
        return self

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate that production settings are secure."""
        if self.app_env == "production":
            errors = []

            if not self.api_key_enabled:
                errors.append("api_key_enabled must be True in production")

            if self.api_key_enabled and not self.api_key:
                errors.append("api_key must be set when api_key_enabled is True")

            if self.debug:
                errors.append("debug must be False in production")

            if "*" in self.cors_allowed_origins:
                errors.append("cors_allowed_origins cannot contain '*' in production")

            if self.gateway_mode != "live":
                errors.append("gateway_mode must be 'live' in production")

            if errors:
                raise ValueError(
                    f"Production configuration errors: {'; '.join(errors)}"
                )

        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings if needed.
    """
    return Settings()
