import pytest

from rankgrid.core import config


def test_get_settings_reads_env(monkeypatch):
    monkeypatch.setenv("DFS_LOGIN", "me@example.com")
    monkeypatch.setenv("DFS_PASSWORD", "pw")
    monkeypatch.setenv("DFS_SEARCH_DEPTH", "100")
    monkeypatch.setenv("DFS_ZOOM", "14z")
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "1.5")
    monkeypatch.setenv("POLL_MAX_ATTEMPTS", "40")

    settings = config.get_settings()

    assert settings.dfs_login == "me@example.com"
    assert settings.dfs_password == "pw"
    assert settings.search_depth == 100
    assert settings.zoom == "14z"
    assert settings.poll_interval == 1.5
    assert settings.poll_max_attempts == 40


def test_get_settings_defaults():
    settings = config.get_settings()

    assert settings.search_depth == 50
    assert settings.zoom == "15z"
    assert settings.language_code == "en"
    assert settings.device == "desktop"
    assert settings.poll_interval == 2.2
    assert settings.poll_retry_delay == 2.5
    assert settings.poll_max_attempts is None


def test_get_settings_warns_when_missing(monkeypatch, caplog):
    monkeypatch.delenv("DFS_LOGIN", raising=False)
    monkeypatch.delenv("GOOGLE_PLACES_API_KEY", raising=False)

    with caplog.at_level("WARNING"):
        settings = config.get_settings()

    assert "DFS_LOGIN / DFS_PASSWORD are not configured" in " ".join(caplog.messages)
    assert "GOOGLE_PLACES_API_KEY is not configured" in " ".join(caplog.messages)
    assert settings.dfs_login == ""


def test_get_settings_rejects_bad_depth(monkeypatch):
    monkeypatch.setenv("DFS_SEARCH_DEPTH", "0")

    with pytest.raises(config.ConfigError):
        config.get_settings()


def test_require_dfs_credentials(monkeypatch):
    assert config.require_dfs_credentials() == ("login", "secret")

    monkeypatch.setenv("DFS_PASSWORD", "")
    config.get_settings.cache_clear()
    with pytest.raises(config.ConfigError):
        config.require_dfs_credentials()


def test_default_phone_region(monkeypatch):
    assert config.get_settings().default_phone_region == "US"

    monkeypatch.setenv("DEFAULT_PHONE_REGION", " gb ")
    config.get_settings.cache_clear()
    assert config.get_settings().default_phone_region == "GB"

    monkeypatch.setenv("DEFAULT_PHONE_REGION", "")
    config.get_settings.cache_clear()
    assert config.get_settings().default_phone_region is None
