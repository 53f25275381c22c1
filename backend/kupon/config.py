"""Application configuration via Pydantic Settings."""

from typing import List, Optional, Set, Tuple
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global scraper settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database (the URL scheme picks the adapter: sqlite+aiosqlite or postgresql+asyncpg)
    DATABASE_URL: str = "sqlite+aiosqlite:///./kupon.db"

    @model_validator(mode="after")
    def fix_database_url(self) -> "Settings":
        """Hosted Postgres hands out postgres:// but asyncpg needs postgresql+asyncpg://"""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            self.DATABASE_URL = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgres://"):
            self.DATABASE_URL = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    VERSION: str = "0.1.0"

    # Scheduling
    SCRAPE_INTERVAL_MINUTES: int = 15
    CLEANUP_INTERVAL_MINUTES: int = 60

    # Orchestration
    MAX_CONCURRENT_SCRAPERS: int = 5
    PLATFORM_TIMEOUT_SECONDS: float = 300.0
    DELAY_BETWEEN_BATCHES_SECONDS: float = 5.0
    DELAY_BETWEEN_REQUESTS_SECONDS: float = 2.0

    # Fetching
    DEFAULT_TIMEOUT_SECONDS: float = 30.0  # browser navigation
    HTTP_TIMEOUT_SECONDS: float = 15.0
    MAX_RETRIES: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 2.0
    BROWSER_HARD_TIMEOUT_SECONDS: float = 90.0
    BROWSER_HEADLESS: bool = True
    ANTI_BOT_WAIT_SECONDS: float = 5.0
    WAIT_FOR_SELECTOR_TIMEOUT_SECONDS: float = 10.0
    SCROLL_COUNT: int = 3
    HTTP_MAX_ITEMS: int = 5

    # Per-platform switches
    SHOPEE_ENABLED: bool = True
    TOKOPEDIA_ENABLED: bool = True
    LAZADA_ENABLED: bool = True
    BLIBLI_ENABLED: bool = True
    TRAVELOKA_ENABLED: bool = True
    GRAB_ENABLED: bool = True

    # Strategy overrides
    FORCE_MOCK_DATA: bool = False
    FORCE_CURATED_DATA: bool = False
    # Comma-separated "platform:endpoint" pairs known to be slow or bot-protected
    PROBLEMATIC_TARGETS: str = ""
    PROBLEMATIC_TARGET_STRATEGY: str = "synthetic"

    # Fallback data
    CURATED_DATA_PATH: str = ""  # empty = bundled kupon/data/curated_deals.json
    CURATED_SAMPLE_SIZE: int = 5
    SYNTHETIC_ITEM_COUNT: int = 5
    RANDOM_SEED: Optional[int] = None

    # Proxy
    PROXY_LIST: str = ""  # Comma-separated list of proxy URLs

    # API
    # An empty key leaves POST /scrape/trigger unauthenticated.
    SCRAPER_API_KEY: str = ""
    CORS_ORIGINS: str = "*"

    def get_proxy_list(self) -> List[str]:
        """Parse PROXY_LIST into a list of proxy URLs.

        Returns:
            List of proxy URL strings, empty if PROXY_LIST is not set
        """
        if not self.PROXY_LIST:
            return []
        return [p.strip() for p in self.PROXY_LIST.split(",") if p.strip()]

    def get_problematic_targets(self) -> Set[Tuple[str, str]]:
        """Parse PROBLEMATIC_TARGETS into (platform, endpoint) pairs.

        Entries without a colon are ignored.
        """
        targets = set()
        for entry in self.PROBLEMATIC_TARGETS.split(","):
            platform, sep, endpoint = entry.strip().partition(":")
            if sep and platform and endpoint:
                targets.add((platform.strip().lower(), endpoint.strip()))
        return targets

    def get_cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def is_platform_enabled(self, slug: str) -> bool:
        """Return the environment switch for a platform (unknown slugs are enabled)."""
        return bool(getattr(self, f"{slug.upper()}_ENABLED", True))


settings = Settings()
