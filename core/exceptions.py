"""Application-wide exception classes."""

from __future__ import annotations


class ApplicationError(Exception):
    """Base exception for all application errors."""
    code = "ERR_INTERNAL"


class ConfigurationError(ApplicationError):
    """Raised when configuration is invalid."""
    pass


class DatabaseError(ApplicationError):
    """Base exception for database-related errors."""
    pass


class ConnectionPoolError(DatabaseError):
    """Raised when database connection pool has issues."""
    pass


class RepositoryError(DatabaseError):
    """Raised when repository operation fails."""
    pass


class ParticipantExistsError(RepositoryError):
    """Raised when a user is already registered in a lottery."""
    code = "ERR_ALREADY_JOINED"


class ServiceError(ApplicationError):
    """Base exception for service-level errors."""
    pass


class ValidationError(ApplicationError):
    """Raised when data validation fails."""
    code = "ERR_BAD_REQUEST"


class RateLimitError(ApplicationError):
    """Raised when rate limit is exceeded."""
    code = "ERR_RATE_LIMITED"


class AuthenticationError(ApplicationError):
    """Raised when authentication fails."""
    code = "ERR_UNAUTHORIZED"


class AuthorizationError(ApplicationError):
    """Raised when authorization fails."""
    code = "ERR_PERMISSION_DENIED"


class LotteryError(ServiceError):
    """Base exception for lottery operations."""
    pass


class LotteryNotFoundError(LotteryError):
    """Raised when the lottery (or an entity inside it) does not exist."""
    code = "ERR_NOT_FOUND"


class LotteryConflictError(LotteryError):
    """Raised when a non-draft lottery already occupies the id."""
    code = "ERR_CONFLICT"


class LotteryEndedError(LotteryError):
    """Raised when a completed lottery is modified or drawn again."""
    code = "ERR_LOTTERY_ENDED"


class LotteryNotActiveError(LotteryError):
    """Raised when an operation requires an active lottery."""
    code = "ERR_LOTTERY_NOT_ACTIVE"


class LotteryFullError(LotteryError):
    """Raised when the lottery reached its capacity."""
    code = "ERR_LOTTERY_FULL"


class AlreadyJoinedError(LotteryError):
    """Raised when the user already joined the lottery."""
    code = "ERR_ALREADY_JOINED"


class LotteryNotDrawnError(LotteryError):
    """Raised when results are requested before the draw."""
    code = "ERR_LOTTERY_NOT_DRAWN"


class TokenInvalidError(LotteryError, AuthenticationError):
    """Raised when an edit token is missing, expired or mismatched."""
    code = "ERR_TOKEN_INVALID"


class PermissionDeniedError(LotteryError, AuthorizationError):
    """Raised when a non-creator attempts a creator-only action."""
    code = "ERR_PERMISSION_DENIED"


class CreationThrottledError(LotteryError, RateLimitError):
    """Base exception for draft creation throttling."""
    code = "ERR_RATE_LIMITED"


class TooFrequentError(CreationThrottledError):
    """Raised when a creator opens drafts faster than the per-minute limit."""
    code = "ERR_TOO_FREQUENT"


class DailyLimitExceededError(CreationThrottledError):
    """Raised when a creator exceeds the daily draft limit."""
    code = "ERR_DAILY_LIMIT"
