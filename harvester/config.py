"""Application configuration using Pydantic settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Harvester settings."""

    # Target site
    base_url: str = "https://www.stanki.ru"
    catalog_url: str = "https://www.stanki.ru/catalog/"
    # Bitrix page-index query parameter used by category listings
    page_param: str = "PAGEN_2"
    # Category probed by the site-structure inspection mode
    sample_category_url: str = (
        "https://www.stanki.ru/catalog/metalloobrabatyvayuschee_oborudovanie/"
    )

    # App Settings
    debug: bool = False
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True

    # HTTP
    request_timeout: float = 30.0  # Overall per-attempt timeout in seconds
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )

    # ==========================================================================
    # Concurrency & Throttling
    # ==========================================================================
    fetch_concurrency: int = 5  # Concurrent category walks
    enrich_concurrency: int = 10  # Concurrent detail-page fetches
    request_delay_ms: int = 500  # Delay before every page request
    results_queue_size: int = 100  # Backpressure bound on the results channel

    # ==========================================================================
    # Retry Limits
    # ==========================================================================
    catalog_max_retries: int = 3
    page_max_retries: int = 2
    detail_max_retries: int = 2

    # Hard ceiling on pages walked per category
    max_pages_per_category: int = Field(100, ge=1, le=100)

    # ==========================================================================
    # Output
    # ==========================================================================
    output_dir: str = "."
    output_format: str = "both"  # json, csv or both
    json_filename: str = "products.json"
    csv_filename: str = "products.csv"

    model_config = SettingsConfigDict(
        env_prefix="HARVESTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def request_delay(self) -> float:
        """Inter-request delay in seconds."""
        return self.request_delay_ms / 1000.0


settings = Settings()
