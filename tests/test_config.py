"""Tests for environment-driven configuration."""

import pytest

from packsync.config import load_config

_ENV_KEYS = [
    "PACKSYNC_API_BASE_URL",
    "PACKSYNC_REQUEST_TIMEOUT_SEC",
    "PACKSYNC_DB_PATH",
    "PACKSYNC_LOG_LEVEL",
    "LOG_LEVEL",
    "PACKSYNC_INVALIDATION_DEBOUNCE_MS",
    "PACKSYNC_INVALIDATION_MIN_AGE_MS",
    "PACKSYNC_SYNC_INTERVAL_SEC",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env out of the test run
    monkeypatch.chdir(tmp_path)


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()

        assert config.api.base_url == "http://localhost:5000"
        assert config.api.get_retries == 2
        assert config.invalidation.debounce_seconds == pytest.approx(0.15)
        assert config.invalidation.min_age_seconds == pytest.approx(0.10)
        assert config.invalidation.recheck_seconds == pytest.approx(0.05)
        assert config.sync.probe_path == "/api/auth/me"
        assert config.storage.recent_lists_limit == 5
        assert config.runtime.log_level == "INFO"

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("PACKSYNC_API_BASE_URL", "https://packing.example.com/")
        monkeypatch.setenv("PACKSYNC_LOG_LEVEL", "debug")
        monkeypatch.setenv("PACKSYNC_SYNC_INTERVAL_SEC", "45")

        config = load_config()

        assert config.api.base_url == "https://packing.example.com"
        assert config.runtime.log_level == "DEBUG"
        assert config.sync.interval_sec == 45.0

    def test_overrides_take_precedence(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PACKSYNC_DB_PATH", "/var/lib/packsync/env.db")
        db_path = str(tmp_path / "override.db")

        config = load_config(PACKSYNC_DB_PATH=db_path)

        assert config.storage.db_path == db_path

    def test_section_overrides(self):
        config = load_config(storage={"db_path": ":memory:", "recent_lists_limit": 3})

        assert config.storage.db_path == ":memory:"
        assert config.storage.recent_lists_limit == 3

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("PACKSYNC_REQUEST_TIMEOUT_SEC", "-1"),
            ("PACKSYNC_API_BASE_URL", "ftp://example.com"),
            ("PACKSYNC_LOG_LEVEL", "LOUD"),
            ("PACKSYNC_INVALIDATION_MIN_AGE_MS", "500"),
        ],
    )
    def test_invalid_values_fail_fast(self, monkeypatch, key, value):
        monkeypatch.setenv(key, value)

        with pytest.raises(RuntimeError, match="Configuration validation failed"):
            load_config()
