"""Configuration management for the scout pipeline service."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_ANON_KEY: str = Field(..., description="Supabase anon (public) key")

    # Anthropic configuration (optional - AI calls fall back without it)
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")

    # Environment
    SCOUT_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")
    SCOUT_ID: str = Field(default="local-scout", description="Owner id for prospect rows")

    # Models
    EVALUATION_MODEL: str = Field(
        default="claude-sonnet-4-5-20250929", description="Model for prospect evaluation"
    )
    EXTRACTION_MODEL: str = Field(
        default="claude-haiku-4-5-20251001", description="Model for bulk/roster extraction"
    )
    OUTREACH_MODEL: str = Field(
        default="claude-haiku-4-5-20251001", description="Model for outreach drafting"
    )

    # Timeouts
    AI_TIMEOUT_SECONDS: float = Field(default=60.0, description="Timeout for AI service calls")
    STORE_TIMEOUT_SECONDS: float = Field(default=20.0, description="Timeout for store calls")

    # Durable local state
    LOCAL_STATE_DIR: str = Field(
        default=".scoutcrm", description="Directory for durable local state (queue, counters)"
    )
    AUTH_SESSION_KEY: str = Field(
        default="scout_auth_session", description="Local storage key holding the auth session"
    )
    USE_REST_STORE: bool = Field(
        default=True, description="Use the direct REST client instead of supabase-py"
    )

    # Limits
    BULK_IMPORT_DAILY_LIMIT: int = Field(default=25, description="Bulk-imported prospects per day")
    AI_DAILY_CREDITS: int = Field(default=50, description="Daily AI credit budget")
    AI_MONTHLY_CREDITS: int = Field(default=500, description="Monthly AI credit budget")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
