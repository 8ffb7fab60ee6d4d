"""Application configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.
"""

from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults for development.
    Production deployments MUST set FORWARD_URL and usually FORWARD_API_KEY.

    Environment Variables:
        SMTP_HOST: Bind address (default 0.0.0.0)
        SMTP_PORT: Listen port (default 2525)
        SMTP_SERVER_HOSTNAME: Hostname announced in the SMTP banner
        SMTP_ACCEPTED_DOMAIN: Only recipients at this domain are relayed
        SMTP_MAX_SIZE: Maximum DATA size in bytes
        FORWARD_URL: Downstream endpoint receiving parsed messages
        FORWARD_TIMEOUT_MS: Downstream request timeout in milliseconds
        FORWARD_AUTH_HEADER_NAME: Header carrying the API key
        FORWARD_API_KEY: API key (no header is sent when blank)
        FORWARD_INCLUDE_RAW: Also send the base64 raw message
        MIME_MAX_DEPTH: Multipart nesting limit for body extraction
        MIME_MAX_PARTS: Part count limit for body extraction
        LOG_LEVEL: Logging level (default INFO)
        LOG_JSON: JSON log lines (default True)
        METRICS_PORT: Prometheus exporter port (disabled when unset)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Email (SMTP ingest)
    SMTP_HOST: str = "0.0.0.0"
    SMTP_PORT: int = Field(default=2525, ge=0, le=65535)
    SMTP_SERVER_HOSTNAME: Optional[str] = None
    SMTP_ACCEPTED_DOMAIN: str = "tikrai.com"
    SMTP_MAX_SIZE: int = Field(default=26_214_400, gt=0)  # 25 MB

    # Downstream forward
    FORWARD_URL: str = "http://localhost:8080/api/inbound-email"
    FORWARD_TIMEOUT_MS: int = Field(default=10_000, gt=0)
    FORWARD_AUTH_HEADER_NAME: str = "X-API-Key"
    FORWARD_API_KEY: Optional[str] = None
    FORWARD_INCLUDE_RAW: bool = False

    # MIME extraction limits
    MIME_MAX_DEPTH: int = Field(default=32, ge=1)
    MIME_MAX_PARTS: int = Field(default=500, ge=1)

    # Application
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    METRICS_PORT: Optional[int] = Field(default=None, ge=1, le=65535)
    ENVIRONMENT: str = "development"

    @field_validator("SMTP_ACCEPTED_DOMAIN")
    @classmethod
    def normalize_domain(cls, value: str) -> str:
        domain = value.strip().lower().lstrip("@")
        if not domain:
            raise ValueError("SMTP_ACCEPTED_DOMAIN must not be empty")
        return domain

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown LOG_LEVEL: {value}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache for singleton behavior.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
