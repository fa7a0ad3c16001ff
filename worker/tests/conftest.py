import sys
from pathlib import Path

import pytest

# Ensure `rankgrid` package is importable when running pytest from the repo or worker directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rankgrid.core import config  # noqa: E402


@pytest.fixture(autouse=True)
def dfs_env(monkeypatch):
    """Provide credentials and keep a local .env from leaking into tests."""
    monkeypatch.setattr(config, "load_dotenv", lambda: None)
    monkeypatch.setenv("DFS_LOGIN", "login")
    monkeypatch.setenv("DFS_PASSWORD", "secret")
    monkeypatch.setenv("GOOGLE_PLACES_API_KEY", "places-key")
    for name in (
        "DFS_SEARCH_DEPTH",
        "DFS_ZOOM",
        "DFS_LANGUAGE_CODE",
        "DFS_DEVICE",
        "POLL_INTERVAL_SECONDS",
        "POLL_RETRY_DELAY_SECONDS",
        "POLL_MAX_ATTEMPTS",
        "DEFAULT_PHONE_REGION",
    ):
        monkeypatch.delenv(name, raising=False)
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()
