"""Retention worker for abandoned drafts and expired edit tokens."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from core.constants import CleanupDefaults
from core.logger import get_logger
from database.models import utcnow
from database.repositories import LotteryRepository

logger = get_logger(__name__)


@dataclass
class CleanupReport:
    drafts_deleted: int = 0
    tokens_deleted: int = 0
    checkpointed: bool = False
    errors: int = 0


class CleanupService:
    """Hourly housekeeping, independent of the lottery engine."""

    def __init__(
        self,
        repository: LotteryRepository,
        interval: float = CleanupDefaults.INTERVAL_SECONDS,
        draft_max_age: float = CleanupDefaults.DRAFT_MAX_AGE_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.interval = interval
        self.draft_max_age = draft_max_age
        self.clock = clock
        self.running = False
        self.cleanup_task: Optional[asyncio.Task] = None

    async def run_once(self) -> CleanupReport:
        """Run every cleanup step; a failing step does not skip the others."""
        report = CleanupReport()
        now = self.clock()

        try:
            report.drafts_deleted = await self.repository.delete_stale_drafts(
                now - timedelta(seconds=self.draft_max_age)
            )
            if report.drafts_deleted:
                logger.info(f"Cleaned up {report.drafts_deleted} stale draft lotteries")
        except Exception as e:
            report.errors += 1
            logger.error(f"Error cleaning up drafts: {e}", exc_info=True)

        try:
            report.tokens_deleted = await self.repository.delete_expired_tokens(now)
            if report.tokens_deleted:
                logger.info(f"Cleaned up {report.tokens_deleted} expired edit tokens")
        except Exception as e:
            report.errors += 1
            logger.error(f"Error cleaning up expired tokens: {e}", exc_info=True)

        try:
            await self.repository.checkpoint_wal()
            report.checkpointed = True
        except Exception as e:
            report.errors += 1
            logger.error(f"Error checkpointing WAL: {e}", exc_info=True)

        return report

    async def cleanup_loop(self) -> None:
        logger.info(f"Cleanup loop started (interval: {self.interval / 3600:.1f}h)")

        while self.running:
            try:
                await asyncio.sleep(self.interval)
                if self.running:
                    await self.run_once()
            except asyncio.CancelledError:
                logger.info("Cleanup loop cancelled")
                break

    async def start(self) -> None:
        if self.running:
            logger.warning("Cleanup service is already running")
            return

        self.running = True
        self.cleanup_task = asyncio.create_task(self.cleanup_loop())
        logger.info("Cleanup service started")

    async def stop(self) -> None:
        if not self.running:
            return

        self.running = False

        if self.cleanup_task:
            self.cleanup_task.cancel()
            try:
                await self.cleanup_task
            except asyncio.CancelledError:
                pass
            self.cleanup_task = None

        logger.info("Cleanup service stopped")
