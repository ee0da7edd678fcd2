"""Configuration data models."""

from dataclasses import dataclass
from pathlib import Path

DEFAULT_BASE_URL = "https://boardgamegeek.com/xmlapi2"


@dataclass(frozen=True)
class AppConfig:
    """Application configuration settings."""
    cache_directory: Path
    username: str | None = None
    base_url: str = DEFAULT_BASE_URL
    api_token: str | None = None
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    max_attempts: int = 10  # Total HTTP attempts per logical fetch
    initial_backoff: float = 1.0
    backoff_multiplier: float = 1.4
    max_backoff: float = 15.0
    request_delay: float = 0.0  # Minimum spacing between any two requests
    subfetch_delay: float = 5.0  # Pause between the two collection sub-fetches
    page_delay: float = 5.0  # Pause between plays pages
    concurrent_subfetches: bool = False
    log_level: str = "INFO"
