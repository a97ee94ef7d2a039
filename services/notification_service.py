"""Lottery event notifications.

The engine only ever submits events to a :class:`NotificationDispatcher`;
a single worker task hands them to a :class:`Notifier`, so delivery never
blocks or fails the operation that produced the event.
"""

from __future__ import annotations

import asyncio
import html
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence, TYPE_CHECKING

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from asyncio_throttle import Throttler

from core.constants import NotificationDefaults
from core.logger import get_logger
from database.models import Lottery, Prize, Winner
from utils.performance import PerformanceMonitor

if TYPE_CHECKING:
    from aiogram import Bot

logger = get_logger(__name__)


class Notifier(Protocol):
    async def lottery_created(self, lottery: Lottery, prizes: Sequence[Prize]) -> None: ...

    async def winners_drawn(self, lottery: Lottery, winners: Sequence[Winner]) -> None: ...


def lottery_link(web_domain: str, lottery_id: str) -> str:
    return f"{web_domain.rstrip('/')}/lottery/{lottery_id}"


def join_link(lottery_id: str, bot_username: str = "", web_domain: str = "") -> Optional[str]:
    """Deep link into the bot, or the web page when it is served over https."""
    if bot_username:
        return f"https://t.me/{bot_username}?start=join_{lottery_id}"
    if web_domain.startswith("https://"):
        return lottery_link(web_domain, lottery_id)
    return None


def format_created_message(lottery: Lottery, prizes: Sequence[Prize], web_domain: str) -> str:
    prize_lines = "\n".join(f"- {html.escape(p.name)} × {p.quantity}" for p in prizes)
    return (
        f"Lottery ID: {lottery.id}\n"
        f"Title: {html.escape(lottery.title)}\n"
        f"Prizes:\n{prize_lines}\n\n"
        f"More details on the web page:\n{lottery_link(web_domain, lottery.id)}"
    )


def group_prizes_by_user(winners: Sequence[Winner]) -> Dict[int, List[str]]:
    """Prize names per winning user, in draw order."""
    by_user: Dict[int, List[str]] = {}
    for winner in winners:
        by_user.setdefault(winner.user_id, []).append(winner.prize_name)
    return by_user


def format_winner_message(lottery: Lottery, prize_names: Sequence[str], creator_name: str) -> str:
    prizes = html.escape(", ".join(prize_names))
    return (
        "Winner announcement\n\n"
        f"Congratulations, you won in the lottery {html.escape(lottery.title)}!\n"
        f"Prizes: {prizes}\n\n"
        f'Please contact <a href="tg://user?id={lottery.creator_id}">{html.escape(creator_name)}</a> '
        "to claim your prize."
    )


def format_results_message(lottery: Lottery, winners: Sequence[Winner], web_domain: str) -> str:
    winner_lines = "\n".join(
        f'- {html.escape("@" + w.username) if w.username else w.user_id} won "{html.escape(w.prize_name)}"'
        for w in winners
    )
    return (
        "The draw is complete\n\n"
        f"Lottery ID: {lottery.id}\n"
        f"Title: {html.escape(lottery.title)}\n"
        f"Winners:\n{winner_lines}\n\n"
        f"More details on the web page:\n{lottery_link(web_domain, lottery.id)}"
    )


class LoggingNotifier:
    """Notifier used when no bot is configured: events only reach the log."""

    async def lottery_created(self, lottery: Lottery, prizes: Sequence[Prize]) -> None:
        logger.info(f"Lottery {lottery.id} created by {lottery.creator_id} with {len(prizes)} prize(s)")

    async def winners_drawn(self, lottery: Lottery, winners: Sequence[Winner]) -> None:
        logger.info(f"Lottery {lottery.id} drawn: {len(winners)} winner(s)")


class TelegramNotifier:
    """Deliver lottery events as Telegram messages."""

    def __init__(self, bot: Bot, web_domain: str = "", rate_limit: int = NotificationDefaults.RATE_LIMIT):
        """Initialize notifier.

        Args:
            bot: Telegram bot instance
            web_domain: Public base URL of the web frontend
            rate_limit: Maximum messages per second
        """
        self.bot = bot
        self.web_domain = web_domain.rstrip("/")
        self.throttler = Throttler(rate_limit=rate_limit, period=1.0)
        self._bot_username: Optional[str] = None

    async def _get_bot_username(self) -> str:
        if self._bot_username is None:
            try:
                me = await self.bot.get_me()
                self._bot_username = me.username or ""
            except Exception as e:
                logger.warning(f"Cannot resolve bot username: {e}")
                return ""
        return self._bot_username

    async def _get_creator_name(self, creator_id: int) -> str:
        try:
            chat = await self.bot.get_chat(creator_id)
        except Exception as e:
            logger.warning(f"Cannot resolve creator {creator_id}: {e}")
            return "the organizer"
        if chat.username:
            return f"@{chat.username}"
        return chat.first_name or "the organizer"

    async def _send(self, chat_id: int, text: str, **kwargs) -> bool:
        try:
            async with self.throttler:
                await self.bot.send_message(chat_id, text, **kwargs)
            return True
        except Exception as e:
            logger.error(
                f"Failed to send notification to user {chat_id}: {e}",
                exc_info=True,
                extra={"user_id": chat_id},
            )
            return False

    async def lottery_created(self, lottery: Lottery, prizes: Sequence[Prize]) -> None:
        """Send the creator a summary with the join button."""
        link = join_link(lottery.id, await self._get_bot_username(), self.web_domain)
        markup = None
        if link:
            markup = InlineKeyboardMarkup(
                inline_keyboard=[[InlineKeyboardButton(text=">>> Join <<<", url=link)]]
            )

        sent = await self._send(
            lottery.creator_id,
            format_created_message(lottery, prizes, self.web_domain),
            parse_mode="HTML",
            reply_markup=markup,
        )
        if sent:
            logger.info(
                f"Creation notice sent for lottery {lottery.id}",
                extra={"lottery_id": lottery.id},
            )

    async def winners_drawn(self, lottery: Lottery, winners: Sequence[Winner]) -> None:
        """Message every winner once, then send the creator the full list."""
        if not winners:
            return

        creator_name = await self._get_creator_name(lottery.creator_id)
        delivered = 0
        for user_id, prize_names in group_prizes_by_user(winners).items():
            if await self._send(
                user_id,
                format_winner_message(lottery, prize_names, creator_name),
                parse_mode="HTML",
            ):
                delivered += 1

        await self._send(
            lottery.creator_id,
            format_results_message(lottery, winners, self.web_domain),
            parse_mode="HTML",
        )
        logger.info(
            f"Winner notices for lottery {lottery.id}: {delivered} delivered",
            extra={"lottery_id": lottery.id},
        )


@dataclass
class NotificationEvent:
    kind: str  # "lottery_created" | "winners_drawn"
    lottery: Lottery
    items: List = field(default_factory=list)


class NotificationDispatcher:
    """Bounded queue with a single delivery worker."""

    def __init__(
        self,
        notifier: Notifier,
        queue_size: int = NotificationDefaults.QUEUE_SIZE,
        monitor: Optional[PerformanceMonitor] = None,
        drain_timeout: float = NotificationDefaults.DRAIN_TIMEOUT,
    ):
        self.notifier = notifier
        self.drain_timeout = drain_timeout
        self.queue: asyncio.Queue[NotificationEvent] = asyncio.Queue(maxsize=queue_size)
        self.monitor = monitor or PerformanceMonitor()
        self.running = False
        self.worker_task: Optional[asyncio.Task] = None

    def submit_lottery_created(self, lottery: Lottery, prizes: Sequence[Prize]) -> bool:
        return self._submit(NotificationEvent("lottery_created", lottery, list(prizes)))

    def submit_winners_drawn(self, lottery: Lottery, winners: Sequence[Winner]) -> bool:
        return self._submit(NotificationEvent("winners_drawn", lottery, list(winners)))

    def _submit(self, event: NotificationEvent) -> bool:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error(f"Notification queue full, dropping {event.kind} for lottery {event.lottery.id}")
            self.monitor.record_notification_failure(event.kind)
            return False
        self.monitor.record_queue_size(self.queue.qsize())
        return True

    async def deliver(self, event: NotificationEvent) -> bool:
        """Hand one event to the notifier; failures are logged, never raised."""
        try:
            if event.kind == "lottery_created":
                await self.notifier.lottery_created(event.lottery, event.items)
            elif event.kind == "winners_drawn":
                await self.notifier.winners_drawn(event.lottery, event.items)
            else:
                logger.warning(f"Unknown notification kind: {event.kind}")
                return False
            return True
        except Exception as e:
            logger.error(
                f"Failed to deliver {event.kind} for lottery {event.lottery.id}: {e}",
                exc_info=True,
                extra={"lottery_id": event.lottery.id},
            )
            self.monitor.record_notification_failure(event.kind)
            return False

    async def _worker(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                await self.deliver(event)
            finally:
                self.queue.task_done()
                self.monitor.record_queue_size(self.queue.qsize())

    async def start(self) -> None:
        if self.running:
            logger.warning("Notification dispatcher is already running")
            return
        self.running = True
        self.worker_task = asyncio.create_task(self._worker())
        logger.info("Notification dispatcher started")

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        if self.running:
            await self.queue.join()

    async def stop(self, drain: bool = True) -> None:
        if not self.running:
            return
        if drain:
            try:
                await asyncio.wait_for(self.drain(), timeout=self.drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Notification drain timed out after {self.drain_timeout}s, "
                    f"{self.queue.qsize()} queued event(s) dropped"
                )
        self.running = False
        if self.worker_task:
            self.worker_task.cancel()
            try:
                await self.worker_task
            except asyncio.CancelledError:
                pass
            self.worker_task = None
        logger.info("Notification dispatcher stopped")
