"""Services package."""

from .draw_allocator import allocate_winners, build_weighted_pool, effective_weight
from .retry import DrawOutcome, RetryPolicy, draw_with_retry
from .notification_service import (
    LoggingNotifier,
    NotificationDispatcher,
    NotificationEvent,
    Notifier,
    TelegramNotifier,
)
from .lottery_service import JoinRequest, LotteryInput, LotteryService, LotteryUpdate
from .scheduler import AutoDrawScheduler, SchedulerState
from .cleanup_service import CleanupReport, CleanupService

__all__ = [
    "allocate_winners",
    "build_weighted_pool",
    "effective_weight",
    "DrawOutcome",
    "RetryPolicy",
    "draw_with_retry",
    "LoggingNotifier",
    "NotificationDispatcher",
    "NotificationEvent",
    "Notifier",
    "TelegramNotifier",
    "JoinRequest",
    "LotteryInput",
    "LotteryService",
    "LotteryUpdate",
    "AutoDrawScheduler",
    "SchedulerState",
    "CleanupReport",
    "CleanupService",
]
