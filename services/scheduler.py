"""Background auto-draw scheduler."""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional

from core.constants import SchedulerDefaults
from core.logger import get_logger
from database.models import utcnow
from database.repositories import LotteryRepository
from services.lottery_service import LotteryService
from services.retry import DrawOutcome
from utils.performance import PerformanceMonitor

logger = get_logger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    TRIGGERING = "triggering"


class AutoDrawScheduler:
    """Periodically draw lotteries whose deadline passed or whose capacity filled.

    Draws go through :meth:`LotteryService.draw_with_retry`, the same path
    full-mode joins use, so a lottery another trigger already completed is
    a no-op here.
    """

    def __init__(
        self,
        service: LotteryService,
        repository: Optional[LotteryRepository] = None,
        interval: float = SchedulerDefaults.INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
        monitor: Optional[PerformanceMonitor] = None,
    ):
        self.service = service
        self.repository = repository or service.repository
        self.interval = interval
        self.clock = clock
        self.monitor = monitor or PerformanceMonitor()
        self.state = SchedulerState.IDLE
        self.running = False
        self.scheduler_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    async def run_once(self) -> Dict[str, DrawOutcome]:
        """Poll once and draw every due lottery.

        Returns:
            Outcome per due lottery id
        """
        self.state = SchedulerState.POLLING
        try:
            due_ids = await self.repository.get_due_lottery_ids(self.clock())
            self.monitor.record_scheduler_cycle(len(due_ids))

            outcomes: Dict[str, DrawOutcome] = {}
            if due_ids:
                logger.info(f"Auto draw: {len(due_ids)} due lotter{'y' if len(due_ids) == 1 else 'ies'}")
                self.state = SchedulerState.TRIGGERING
                for lottery_id in due_ids:
                    outcomes[lottery_id] = await self.service.draw_with_retry(lottery_id, source="scheduler")
            else:
                logger.debug("Auto draw: nothing due")
            return outcomes
        finally:
            self.state = SchedulerState.IDLE

    async def scheduler_loop(self) -> None:
        """Run a cycle immediately, then once per interval until stopped."""
        logger.info(f"Auto draw scheduler loop started (interval: {self.interval}s)")

        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.monitor.record_scheduler_cycle(0, failed=True)
                logger.error(f"Auto draw cycle failed: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue

    async def start(self) -> None:
        if self.running:
            logger.warning("Auto draw scheduler is already running")
            return

        self.running = True
        self._stop_event.clear()
        self.scheduler_task = asyncio.create_task(self.scheduler_loop())
        logger.info("Auto draw scheduler started")

    async def stop(self) -> None:
        if not self.running:
            return

        self.running = False
        self._stop_event.set()

        if self.scheduler_task:
            # Let an in-flight cycle finish its transaction, then make sure the loop exits
            try:
                await asyncio.wait_for(asyncio.shield(self.scheduler_task), timeout=self.interval)
            except asyncio.TimeoutError:
                self.scheduler_task.cancel()
                try:
                    await self.scheduler_task
                except asyncio.CancelledError:
                    pass
            self.scheduler_task = None

        logger.info("Auto draw scheduler stopped")
