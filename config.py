"""Configuration management via pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Marketplace
    allowed_host: str = "chrono24"

    # Pagination
    default_page_size: int = Field(default=120, ge=1, le=500)
    default_max_pages: int = Field(default=50, ge=1)
    page_goto_timeout_ms: int = 60000
    link_wait_timeout_ms: int = 30000
    page_delay_min_ms: int = 500
    page_delay_max_ms: int = 1700

    # Detail enrichment
    detail_timeout_ms: int = 30000
    detail_concurrency: int = Field(default=4, ge=1, le=16)
    detail_retry_count: int = 1
    detail_retry_backoff_seconds: float = 1.0
    enrich_time_budget_seconds: float | None = None

    # Browser
    headless: bool = True
    block_resources: bool = True
    locale: str = "fr-FR"
    accept_language: str = "fr-FR,fr;q=0.9"
    user_agents: list[str] = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    ]

    # Cache
    cache_ttl_seconds: int = 600

    # Jobs
    database_path: Path = Field(default=Path("./data/jobs.db"))
    job_ttl_seconds: int = 3600
    housekeeping_interval_minutes: int = 10

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3001

    # Logging
    log_level: str = "INFO"

    @property
    def page_delay_range(self) -> tuple[float, float]:
        """Inter-page politeness delay bounds in seconds."""
        low = max(0, self.page_delay_min_ms) / 1000
        high = max(low, self.page_delay_max_ms / 1000)
        return low, high


settings = Settings()
