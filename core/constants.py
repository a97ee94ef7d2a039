"""Application-wide constants and configuration values."""

from __future__ import annotations

from enum import Enum


# Status enums
class LotteryStatus(str, Enum):
    """Lottery lifecycle status. Only ever moves forward."""
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"


class DrawMode(str, Enum):
    """Policy deciding when a lottery is drawn."""
    TIMED = "timed"
    FULL = "full"
    MANUAL = "manual"


# Lottery constants
class LotteryDefaults:
    """Lottery configuration."""
    ID_LENGTH = 6
    ID_MAX_ATTEMPTS = 10
    DEFAULT_WEIGHT = 1
    DEFAULT_PRIZE_QUANTITY = 1


# Draft creation throttling
class CreationLimits:
    """Per-creator draft creation limits."""
    PER_MINUTE = 3
    PER_DAY = 20


# Edit tokens
class EditTokenDefaults:
    """Edit link credentials."""
    TTL_SECONDS = 3600
    TOKEN_BYTES = 24


# Auto-draw scheduler
class SchedulerDefaults:
    """Background draw scheduler configuration."""
    INTERVAL_SECONDS = 60


# Retry policy for background draws
class RetryDefaults:
    """Bounded exponential backoff for draw attempts."""
    MAX_ATTEMPTS = 3
    BASE_DELAY = 0.2  # seconds
    MULTIPLIER = 2.0


# Cleanup worker
class CleanupDefaults:
    """Retention worker configuration."""
    INTERVAL_SECONDS = 3600
    DRAFT_MAX_AGE_SECONDS = 3600


# Database constants
class DatabaseDefaults:
    """Default database configuration."""
    POOL_SIZE = 1  # single writer connection
    BUSY_TIMEOUT = 5000  # milliseconds


# Notification settings
class NotificationDefaults:
    """Notification dispatcher defaults."""
    QUEUE_SIZE = 1000
    RATE_LIMIT = 30  # messages per second
    DRAIN_TIMEOUT = 10.0  # seconds stop() waits for queued events
