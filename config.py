"""Application configuration module.

Reads settings from environment variables with defaults taken from
``core.constants``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from core.constants import (
    CleanupDefaults,
    CreationLimits,
    DatabaseDefaults,
    EditTokenDefaults,
    NotificationDefaults,
    RetryDefaults,
    SchedulerDefaults,
)

# Load environment variables from .env file
load_dotenv()

BOT_TOKEN_PLACEHOLDER = "your_bot_token_here"


def _get_bool(name: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(name: str, default: int) -> int:
    """Get integer from environment variable with fallback."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    """Get float from environment variable with fallback."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_str(name: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.getenv(name, default)


@dataclass(frozen=True)
class Config:
    bot_token: str
    web_domain: str
    environment: str
    debug: bool
    enable_bot: bool
    web_host: str
    web_port: int
    database_path: str
    db_pool_size: int
    db_busy_timeout: int
    log_folder: str
    log_level: str

    # Auto draw
    scheduler_interval: int
    enable_scheduler: bool
    draw_retry_attempts: int
    draw_retry_base_delay: float
    draw_retry_multiplier: float

    # Creation and editing
    edit_token_ttl: int
    draft_limit_per_minute: int
    draft_limit_per_day: int

    # Retention
    cleanup_interval: int
    draft_max_age: int
    enable_cleanup: bool

    notification_queue_size: int
    notification_drain_timeout: float
    bot_rate_limit: int

    @property
    def bot_configured(self) -> bool:
        return bool(self.bot_token) and self.bot_token != BOT_TOKEN_PLACEHOLDER


def load_config() -> Config:
    """Load application configuration from environment variables.

    Returns:
        Config: Application configuration with validated values
    """
    return Config(
        bot_token=_get_str("BOT_TOKEN", BOT_TOKEN_PLACEHOLDER),
        web_domain=_get_str("WEB_DOMAIN", "").rstrip("/"),
        environment=_get_str("ENVIRONMENT", "development"),
        debug=_get_bool("DEBUG", False),
        enable_bot=_get_bool("ENABLE_BOT", True),
        web_host=_get_str("WEB_HOST", "0.0.0.0"),
        # PORT is set by hosting platforms and wins over WEB_PORT
        web_port=_get_int("PORT", _get_int("WEB_PORT", 8080)),
        database_path=_get_str("DATABASE_PATH", "data/lottery.sqlite"),
        db_pool_size=_get_int("DB_POOL_SIZE", DatabaseDefaults.POOL_SIZE),
        db_busy_timeout=_get_int("DB_BUSY_TIMEOUT", DatabaseDefaults.BUSY_TIMEOUT),
        log_folder=_get_str("LOG_FOLDER", "logs"),
        log_level=_get_str("LOG_LEVEL", "INFO"),
        scheduler_interval=_get_int("SCHEDULER_INTERVAL", SchedulerDefaults.INTERVAL_SECONDS),
        enable_scheduler=_get_bool("ENABLE_SCHEDULER", True),
        draw_retry_attempts=_get_int("DRAW_RETRY_ATTEMPTS", RetryDefaults.MAX_ATTEMPTS),
        draw_retry_base_delay=_get_float("DRAW_RETRY_BASE_DELAY", RetryDefaults.BASE_DELAY),
        draw_retry_multiplier=_get_float("DRAW_RETRY_MULTIPLIER", RetryDefaults.MULTIPLIER),
        edit_token_ttl=_get_int("EDIT_TOKEN_TTL", EditTokenDefaults.TTL_SECONDS),
        draft_limit_per_minute=_get_int("DRAFT_LIMIT_PER_MINUTE", CreationLimits.PER_MINUTE),
        draft_limit_per_day=_get_int("DRAFT_LIMIT_PER_DAY", CreationLimits.PER_DAY),
        cleanup_interval=_get_int("CLEANUP_INTERVAL", CleanupDefaults.INTERVAL_SECONDS),
        draft_max_age=_get_int("DRAFT_MAX_AGE", CleanupDefaults.DRAFT_MAX_AGE_SECONDS),
        enable_cleanup=_get_bool("ENABLE_CLEANUP", True),
        notification_queue_size=_get_int("NOTIFICATION_QUEUE_SIZE", NotificationDefaults.QUEUE_SIZE),
        notification_drain_timeout=_get_float("NOTIFICATION_DRAIN_TIMEOUT", NotificationDefaults.DRAIN_TIMEOUT),
        bot_rate_limit=_get_int("BOT_RATE_LIMIT", NotificationDefaults.RATE_LIMIT),
    )
