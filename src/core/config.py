"""
Settings for the API, the Celery workers and the Google and Anthropic clients.
Values come from the environment (upper-case names) or a local .env file.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_env: Literal["development", "staging", "production"] = Field(
        default="development", alias="APP_ENV"
    )
    app_url: str = Field(default="http://localhost:8000", alias="APP_URL")
    frontend_url: str = Field(default="http://localhost:3000", alias="FRONTEND_URL")
    secret_key: str = Field(..., alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Storage
    database_url: str = Field(..., alias="DATABASE_URL")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Google OAuth2 (optional: integrations report "not configured" without them)
    google_client_id: str | None = Field(default=None, alias="GOOGLE_CLIENT_ID")
    google_client_secret: str | None = Field(default=None, alias="GOOGLE_CLIENT_SECRET")

    # Fernet key for OAuth tokens at rest (derived from SECRET_KEY when unset)
    token_encryption_key: str | None = Field(default=None, alias="TOKEN_ENCRYPTION_KEY")

    # Anthropic Claude API
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    claude_model: str = Field(default="claude-3-5-haiku-latest", alias="CLAUDE_MODEL")

    # Rate Limiting
    # Gmail API limits: 250 quota units per user per second; People API 90 QPM for reads
    google_rate_limit_qps: int = Field(default=5, alias="GOOGLE_RATE_LIMIT_QPS")
    google_rate_limit_burst: int = Field(default=100, alias="GOOGLE_RATE_LIMIT_BURST")

    # Sync tuning
    gmail_sync_history_days: int = Field(default=365, alias="GMAIL_SYNC_HISTORY_DAYS")
    gmail_sync_batch_size: int = Field(default=100, alias="GMAIL_SYNC_BATCH_SIZE")
    gmail_fetch_page_size: int = Field(default=500, alias="GMAIL_FETCH_PAGE_SIZE")
    google_contacts_batch_size: int = Field(default=200, alias="GOOGLE_CONTACTS_BATCH_SIZE")
    calendar_sync_days_back: int = Field(default=30, alias="CALENDAR_SYNC_DAYS_BACK")
    calendar_sync_days_ahead: int = Field(default=30, alias="CALENDAR_SYNC_DAYS_AHEAD")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("frontend_url", "app_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure URLs carry a scheme and no trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    def oauth_redirect_uri(self, provider_slug: str) -> str:
        """Callback URL registered with Google for an integration."""
        return f"{self.app_url}/api/v1/integrations/{provider_slug}/callback"


@lru_cache
def get_settings() -> Settings:
    """Build Settings once per process."""
    return Settings()


# Module-level instance imported across the codebase
settings = get_settings()
