"""Application configuration via Pydantic Settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global ingestion settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./hacksniffer.db"

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_database_url(cls, url: str) -> str:
        """Plain sqlite:// URLs need the aiosqlite driver for the async engine."""
        if url.startswith("sqlite:///"):
            return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        if url.startswith("file:"):
            return "sqlite+aiosqlite:///" + url[len("file:"):]
        return url

    # App
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Crawl identity
    USER_AGENT: str = "HackathonSnifferBot/0.1 (+contact@example.com)"

    # Fetcher knobs
    REQUEST_TIMEOUT_MS: int = 15000
    MAX_RETRIES: int = 3
    RETRY_DELAY_MS: int = 1000
    MAX_CONCURRENCY: int = 3
    MIN_REQUEST_INTERVAL_MS: int = 1000

    # Schedule: daily at 03:00 UTC
    INGEST_CRON: str = "0 3 * * *"

    # Deduplication
    DEDUP_THRESHOLD: float = 0.85
    DEDUP_WINDOW: int = 100  # Upcoming stored records compared per candidate


settings = Settings()
