"""Application configuration helpers.

Provider credentials only come from the environment (or a local ``.env``):
``DFS_LOGIN``/``DFS_PASSWORD`` are billable DataForSEO credentials and must
never be hardcoded.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    dfs_login: str
    dfs_password: str
    google_places_api_key: str = ""
    search_depth: int = 50
    zoom: str = "15z"
    language_code: str = "en"
    device: str = "desktop"
    poll_interval: float = 2.2
    poll_retry_delay: float = 2.5
    poll_max_attempts: Optional[int] = None
    default_phone_region: Optional[str] = "US"


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return int(raw)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    dfs_login = os.getenv("DFS_LOGIN", "")
    dfs_password = os.getenv("DFS_PASSWORD", "")
    google_places_api_key = os.getenv("GOOGLE_PLACES_API_KEY", "")
    search_depth = int(os.getenv("DFS_SEARCH_DEPTH", "50"))
    zoom = os.getenv("DFS_ZOOM", "15z").strip()
    language_code = os.getenv("DFS_LANGUAGE_CODE", "en").strip()
    device = os.getenv("DFS_DEVICE", "desktop").strip()
    poll_interval = float(os.getenv("POLL_INTERVAL_SECONDS", "2.2"))
    poll_retry_delay = float(os.getenv("POLL_RETRY_DELAY_SECONDS", "2.5"))
    poll_max_attempts = _optional_int("POLL_MAX_ATTEMPTS")
    default_phone_region_raw = os.getenv("DEFAULT_PHONE_REGION", "US")
    default_phone_region = default_phone_region_raw.strip().upper() or None

    if search_depth < 1:
        raise ConfigError("DFS_SEARCH_DEPTH must be a positive integer.")
    if not dfs_login or not dfs_password:
        logger.warning("DFS_LOGIN / DFS_PASSWORD are not configured; DataForSEO requests will fail.")
    if not google_places_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not configured; place resolution will fail.")

    return Settings(
        dfs_login=dfs_login,
        dfs_password=dfs_password,
        google_places_api_key=google_places_api_key,
        search_depth=search_depth,
        zoom=zoom,
        language_code=language_code,
        device=device,
        poll_interval=poll_interval,
        poll_retry_delay=poll_retry_delay,
        poll_max_attempts=poll_max_attempts,
        default_phone_region=default_phone_region,
    )


def require_dfs_credentials(settings: Optional[Settings] = None) -> tuple:
    """Return the DataForSEO basic auth pair or raise ConfigError."""
    settings = settings or get_settings()
    if not settings.dfs_login or not settings.dfs_password:
        raise ConfigError("Missing DFS_LOGIN / DFS_PASSWORD in the environment.")
    return settings.dfs_login, settings.dfs_password
