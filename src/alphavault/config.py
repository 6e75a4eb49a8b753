"""Configuration management via environment variables.

Reads from .env file (via pydantic-settings) with sensible defaults.
All values can be overridden via environment variables.

Optional:
    EDGAR_IDENTITY        — Name + email sent as User-Agent to the filing feed
    FEED_BASE_URL         — Base URL of the SEC M&A feed worker
    REFERENCE_DATA_PATH   — JSON file overriding the advisor / sector lists
    PORT                  — Server port (Railway sets this automatically)
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Identity sent in the User-Agent header (SEC asks for name + email)
    edgar_identity: str = "AlphaVault alphavault@example.com"

    # Filing feed worker (S-4 / 8-K bulk lists, ticker→CIK, material events)
    feed_base_url: str = "https://sec-edgar-api.raphnardone.workers.dev"
    request_rate_limit: float = 0.2     # seconds between feed requests
    request_timeout: int = 30
    cache_ttl: int = 300                # seconds

    # Parser thresholds
    min_s4_length: int = 1000
    min_8k_length: int = 500
    item_section_cap: int = 5000

    # Optional JSON override for law firms, banks, sector tables, keywords
    reference_data_path: str = ""

    # Server port (Railway sets PORT env var automatically)
    port: int = 8877

    # Strip whitespace and quotes from string fields: the .env file often has
    # trailing spaces that break URLs
    @field_validator("edgar_identity", "feed_base_url", "reference_data_path", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().strip('"').strip("'").strip()
        return v

    @field_validator("feed_base_url")
    @classmethod
    def drop_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


_config: Settings | None = None


def get_config() -> Settings:
    """Get or create the shared Settings singleton."""
    global _config
    if _config is None:
        _config = Settings()
    return _config
