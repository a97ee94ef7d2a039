"""Core application components."""

# Import in correct order to avoid circular dependencies
from core.logger import setup_logger, get_logger
from core.constants import (
    LotteryStatus,
    DrawMode,
    LotteryDefaults,
    CreationLimits,
    EditTokenDefaults,
    SchedulerDefaults,
    RetryDefaults,
    CleanupDefaults,
    DatabaseDefaults,
    NotificationDefaults,
)
from core.exceptions import (
    ApplicationError,
    ConfigurationError,
    DatabaseError,
    RepositoryError,
    ServiceError,
    LotteryError,
    ValidationError,
    RateLimitError,
)

__all__ = [
    # Logging
    'setup_logger',
    'get_logger',
    # Constants
    'LotteryStatus',
    'DrawMode',
    'LotteryDefaults',
    'CreationLimits',
    'EditTokenDefaults',
    'SchedulerDefaults',
    'RetryDefaults',
    'CleanupDefaults',
    'DatabaseDefaults',
    'NotificationDefaults',
    # Exceptions
    'ApplicationError',
    'ConfigurationError',
    'DatabaseError',
    'RepositoryError',
    'ServiceError',
    'LotteryError',
    'ValidationError',
    'RateLimitError',
]
