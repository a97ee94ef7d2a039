"""Application initialization orchestrator."""

from __future__ import annotations

import asyncio
import signal
from contextlib import suppress
from typing import Optional

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiohttp import web as aiohttp_web

from config import Config, load_config
from core.logger import get_logger
from database import LotteryRepository, OptimizedSQLitePool, run_migrations
from services.cleanup_service import CleanupService
from services.lottery_service import LotteryService
from services.notification_service import (
    LoggingNotifier,
    NotificationDispatcher,
    Notifier,
    TelegramNotifier,
)
from services.retry import RetryPolicy
from services.scheduler import AutoDrawScheduler
from utils.performance import PerformanceMonitor
from web.app import create_app

logger = get_logger(__name__)


class ApplicationInitializer:
    """Orchestrates application initialization and lifecycle."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or load_config()
        self.monitor = PerformanceMonitor()
        self.db_pool: Optional[OptimizedSQLitePool] = None
        self.repository: Optional[LotteryRepository] = None
        self.bot: Optional[Bot] = None
        self.dispatcher: Optional[NotificationDispatcher] = None
        self.lottery_service: Optional[LotteryService] = None
        self.scheduler: Optional[AutoDrawScheduler] = None
        self.cleanup_service: Optional[CleanupService] = None
        self.web_runner: Optional[aiohttp_web.AppRunner] = None
        self._stop_event = asyncio.Event()

    async def initialize(self) -> None:
        """Initialize all application components.

        Raises:
            ConnectionPoolError: The database cannot be opened
        """
        await self._init_database()
        self._init_notifications()
        self._init_services()
        await self._init_web_server()

    async def run(self) -> None:
        """Start background workers and block until a shutdown signal."""
        await self.dispatcher.start()

        if self.config.enable_scheduler:
            await self.scheduler.start()
        else:
            logger.info("Auto draw scheduler disabled")

        if self.config.enable_cleanup:
            await self.cleanup_service.start()

        self._install_signal_handlers()
        logger.info("Lottery engine running")

        try:
            await self._stop_event.wait()
            logger.info("Shutting down...")
        finally:
            await self.cleanup()

    def request_stop(self) -> None:
        self._stop_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not available on Windows event loops
            with suppress(NotImplementedError):
                loop.add_signal_handler(sig, self.request_stop)

    async def cleanup(self) -> None:
        """Cleanup resources."""
        with suppress(Exception):
            if self.scheduler:
                await self.scheduler.stop()
        with suppress(Exception):
            if self.cleanup_service:
                await self.cleanup_service.stop()
        with suppress(Exception):
            if self.lottery_service:
                await self.lottery_service.aclose()
        with suppress(Exception):
            if self.dispatcher:
                await self.dispatcher.stop(drain=True)
        with suppress(Exception):
            if self.bot:
                await self.bot.session.close()
        with suppress(Exception):
            if self.web_runner:
                await self.web_runner.cleanup()
        with suppress(Exception):
            if self.db_pool:
                await self.db_pool.close()
        logger.info("Shutdown complete")

    async def _init_database(self) -> None:
        """Initialize database pool and run migrations."""
        self.db_pool = OptimizedSQLitePool(
            database_path=self.config.database_path,
            pool_size=self.config.db_pool_size,
            busy_timeout_ms=self.config.db_busy_timeout,
        )
        await self.db_pool.init_pool()
        await run_migrations(self.db_pool)
        self.repository = LotteryRepository(self.db_pool)
        self.monitor.record_db_pool(self.db_pool.pool_size)
        logger.info("Database initialized")

    def _should_enable_bot(self) -> bool:
        return self.config.enable_bot and self.config.bot_configured

    def _init_notifications(self) -> None:
        notifier: Notifier
        if self._should_enable_bot():
            self.bot = Bot(
                token=self.config.bot_token,
                default=DefaultBotProperties(parse_mode=ParseMode.HTML),
            )
            notifier = TelegramNotifier(
                self.bot,
                web_domain=self.config.web_domain,
                rate_limit=self.config.bot_rate_limit,
            )
            logger.info("Telegram notifications enabled")
        else:
            notifier = LoggingNotifier()
            logger.info("No bot token configured, notifications go to the log only")

        self.dispatcher = NotificationDispatcher(
            notifier,
            queue_size=self.config.notification_queue_size,
            drain_timeout=self.config.notification_drain_timeout,
            monitor=self.monitor,
        )

    def _init_services(self) -> None:
        self.lottery_service = LotteryService(
            self.repository,
            self.dispatcher,
            retry_policy=RetryPolicy(
                max_attempts=self.config.draw_retry_attempts,
                base_delay=self.config.draw_retry_base_delay,
                multiplier=self.config.draw_retry_multiplier,
            ),
            drafts_per_minute=self.config.draft_limit_per_minute,
            drafts_per_day=self.config.draft_limit_per_day,
            edit_token_ttl=self.config.edit_token_ttl,
            monitor=self.monitor,
        )
        self.scheduler = AutoDrawScheduler(
            self.lottery_service,
            interval=self.config.scheduler_interval,
            monitor=self.monitor,
        )
        self.cleanup_service = CleanupService(
            self.repository,
            interval=self.config.cleanup_interval,
            draft_max_age=self.config.draft_max_age,
        )

    async def _init_web_server(self) -> None:
        """Start the health and metrics server."""
        app = create_app(self.repository, self.monitor, self.scheduler)
        self.web_runner = aiohttp_web.AppRunner(app)
        await self.web_runner.setup()

        site = aiohttp_web.TCPSite(self.web_runner, self.config.web_host, self.config.web_port)
        await site.start()

        logger.info(f"Health server started on http://{self.config.web_host}:{self.config.web_port}")
