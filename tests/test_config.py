"""Tests for environment-driven configuration."""

import pytest

from config import BOT_TOKEN_PLACEHOLDER, load_config
from core.constants import CreationLimits, NotificationDefaults, RetryDefaults, SchedulerDefaults


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "BOT_TOKEN",
        "WEB_DOMAIN",
        "SCHEDULER_INTERVAL",
        "DRAW_RETRY_ATTEMPTS",
        "DRAW_RETRY_BASE_DELAY",
        "DRAFT_LIMIT_PER_MINUTE",
        "ENABLE_SCHEDULER",
        "DATABASE_PATH",
        "PORT",
        "WEB_PORT",
        "NOTIFICATION_DRAIN_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    config = load_config()

    assert config.bot_token == BOT_TOKEN_PLACEHOLDER
    assert config.bot_configured is False
    assert config.scheduler_interval == SchedulerDefaults.INTERVAL_SECONDS
    assert config.draw_retry_attempts == RetryDefaults.MAX_ATTEMPTS
    assert config.draft_limit_per_minute == CreationLimits.PER_MINUTE
    assert config.database_path == "data/lottery.sqlite"
    assert config.enable_scheduler is True
    assert config.notification_drain_timeout == NotificationDefaults.DRAIN_TIMEOUT


def test_environment_overrides(clean_env):
    clean_env.setenv("BOT_TOKEN", "123:abc")
    clean_env.setenv("WEB_DOMAIN", "https://lottery.example.com/")
    clean_env.setenv("SCHEDULER_INTERVAL", "15")
    clean_env.setenv("DRAW_RETRY_BASE_DELAY", "0.5")
    clean_env.setenv("ENABLE_SCHEDULER", "off")
    clean_env.setenv("WEB_PORT", "8081")
    clean_env.setenv("PORT", "9000")

    config = load_config()

    assert config.bot_configured is True
    assert config.web_domain == "https://lottery.example.com"
    assert config.scheduler_interval == 15
    assert config.draw_retry_base_delay == 0.5
    assert config.enable_scheduler is False
    assert config.web_port == 9000


def test_malformed_numbers_fall_back(clean_env):
    clean_env.setenv("DRAW_RETRY_ATTEMPTS", "three")
    clean_env.setenv("DRAW_RETRY_BASE_DELAY", "fast")

    config = load_config()

    assert config.draw_retry_attempts == RetryDefaults.MAX_ATTEMPTS
    assert config.draw_retry_base_delay == RetryDefaults.BASE_DELAY
