"""Database package public API."""

from .connection import OptimizedSQLitePool
from .migrations import run_migrations
from .repositories import LotteryRepository

__all__ = [
    "OptimizedSQLitePool",
    "LotteryRepository",
    "run_migrations",
]
