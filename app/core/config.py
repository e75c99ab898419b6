"""Application configuration via pydantic-settings.

Loads all settings from environment variables with sensible defaults.
A global `settings` singleton is available for import throughout the app.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.constants import DEFAULT_ACTOR_ALIASES


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Supabase
    SUPABASE_URL: str
    SUPABASE_KEY: str

    # Apify
    APIFY_TOKEN: str = ""
    APIFY_POLL_INTERVAL_SECONDS: float = 5.0
    APIFY_MAX_WAIT_SECONDS: float = 30 * 60
    APIFY_COST_TIMEOUT_SECONDS: float = 8.0
    # Short actor id -> fully-qualified actor name, JSON in the environment
    APIFY_ACTOR_ALIASES: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_ACTOR_ALIASES)
    )

    # Backfill
    BACKFILL_DEFAULT_DAYS: int = 90
    BACKFILL_MAX_DAYS: int = 365
    BACKFILL_LIST_LIMIT: int = 1000

    # Trustpilot
    TRUSTPILOT_ACTOR_ID: str = "thewolves/trustpilot-reviews-scraper"
    TRUSTPILOT_DELAY_SECONDS: float = 1.5
    TRUSTPILOT_MAX_ITEMS: int = 100

    # CORS
    ALLOWED_ORIGINS: str = "*"

    # Logging
    LOG_LEVEL: str = "INFO"
    APIFY_CLIENT_LOG_LEVEL: str = "WARNING"


settings = Settings()  # type: ignore[call-arg]
