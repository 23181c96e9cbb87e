"""Tests for environment-driven settings."""

import pytest

from metrics_monitor.config import Settings, load_settings
from metrics_monitor.errors import ConfigError

ENV_KEYS = [
    "HOST",
    "PORT",
    "LOG_LEVEL",
    "DATABASE_PATH",
    "METRICS_INTERVAL_SECONDS",
    "SHUTDOWN_GRACE_SECONDS",
    "SHUTDOWN_TIMEOUT_SECONDS",
    "ERROR_SINK_CAPACITY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    assert load_settings() == Settings()


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PORT", "9090")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("DATABASE_PATH", "/var/lib/metrics.db")
    monkeypatch.setenv("METRICS_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("ERROR_SINK_CAPACITY", "50")

    settings = load_settings()
    assert settings.port == 9090
    assert settings.log_level == "debug"
    assert settings.database_path == "/var/lib/metrics.db"
    assert settings.interval_seconds == 2.5
    assert settings.error_sink_capacity == 50


def test_dotenv_file_is_loaded(tmp_path):
    (tmp_path / ".env").write_text("METRICS_INTERVAL_SECONDS=7\nPORT=7000\n", encoding="utf-8")
    settings = load_settings()
    assert settings.interval_seconds == 7.0
    assert settings.port == 7000


def test_environment_wins_over_dotenv(monkeypatch, tmp_path):
    (tmp_path / ".env").write_text("PORT=7000\n", encoding="utf-8")
    monkeypatch.setenv("PORT", "6000")
    assert load_settings().port == 6000


@pytest.mark.parametrize(
    "key, value",
    [
        ("METRICS_INTERVAL_SECONDS", "0"),
        ("METRICS_INTERVAL_SECONDS", "-1"),
        ("METRICS_INTERVAL_SECONDS", "fast"),
        ("PORT", "http"),
        ("ERROR_SINK_CAPACITY", "0"),
        ("SHUTDOWN_GRACE_SECONDS", "-0.5"),
    ],
)
def test_invalid_values_raise_config_error(monkeypatch, key, value):
    monkeypatch.setenv(key, value)
    with pytest.raises(ConfigError, match=key):
        load_settings()
