"""Configuration management for Dossier AI."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Anthropic (LLM calls fail with a clear error when unset)
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    ANTHROPIC_BASE_URL: str | None = Field(default=None, description="Optional API base URL")

    # Brave Search (mock results when unset)
    BRAVE_SEARCH_API_KEY: str | None = Field(default=None, description="Brave Search API key")

    # Supabase (in-memory stores when unset)
    SUPABASE_URL: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
        description="Supabase project URL",
    )
    SUPABASE_SERVICE_ROLE_KEY: str | None = Field(
        default=None, description="Supabase service role key"
    )

    APP_URL: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("APP_URL", "NEXT_PUBLIC_APP_URL"),
        description="Public URL of the web app (CORS origin)",
    )

    # Environment
    DOSSIER_ENV: str = Field(default="dev", description="Environment: dev, test, prod")

    # Models
    LLM_MODEL: str = Field(default="claude-sonnet-4-5-20250929", description="Default model id")
    LLM_TIMEOUT_SECONDS: float = Field(default=60.0, description="Blocking call timeout")
    LLM_STREAM_TIMEOUT_SECONDS: float = Field(default=120.0, description="Streaming call timeout")

    # Search
    SEARCH_TIMEOUT_SECONDS: float = Field(default=10.0, description="Search request timeout")

    # Streamed outline prompt limit
    MIN_PROMPT_CHARS: int = Field(default=10, description="Minimum prompt length")

    # Presentation status stream
    PRESENTATION_POLL_SECONDS: float = Field(
        default=5.0, description="Presentation status stream poll interval"
    )

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance
    """
    return Settings()
