"""Tests for notification formatting, delivery and dispatching."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from core.constants import LotteryStatus
from database.models import Lottery, Prize, Winner
from services.notification_service import (
    LoggingNotifier,
    NotificationDispatcher,
    NotificationEvent,
    TelegramNotifier,
    format_created_message,
    format_results_message,
    format_winner_message,
    group_prizes_by_user,
    join_link,
)


@pytest.fixture
def lottery():
    return Lottery(id="123456", title="Cats & Dogs <raffle>", creator_id=10, status=LotteryStatus.ACTIVE)


@pytest.fixture
def winners():
    return [
        Winner(lottery_id="123456", participant_id=1, prize_id=1, user_id=1, prize_name="Mug", username="alice"),
        Winner(lottery_id="123456", participant_id=2, prize_id=1, user_id=2, prize_name="Mug"),
        Winner(lottery_id="123456", participant_id=1, prize_id=2, user_id=1, prize_name="Shirt", username="alice"),
    ]


@pytest.fixture
def bot():
    bot = AsyncMock()
    bot.get_me.return_value = SimpleNamespace(username="lotto_bot")
    bot.get_chat.return_value = SimpleNamespace(username="organizer", first_name="Olga")
    return bot


# Formatting


def test_join_link_prefers_bot_deep_link():
    assert join_link("123456", "lotto_bot", "https://example.com") == "https://t.me/lotto_bot?start=join_123456"
    assert join_link("123456", "", "https://example.com/") == "https://example.com/lottery/123456"
    assert join_link("123456", "", "http://localhost:8080") is None


def test_created_message_lists_prizes(lottery):
    text = format_created_message(
        lottery,
        [Prize(name="Mug", quantity=2), Prize(name="Shirt")],
        "https://example.com",
    )

    assert "Lottery ID: 123456" in text
    assert "Cats &amp; Dogs &lt;raffle&gt;" in text
    assert "- Mug × 2" in text
    assert "- Shirt × 1" in text
    assert "https://example.com/lottery/123456" in text


def test_group_prizes_by_user(winners):
    assert group_prizes_by_user(winners) == {1: ["Mug", "Shirt"], 2: ["Mug"]}


def test_winner_message_links_creator(lottery):
    text = format_winner_message(lottery, ["Mug", "Shirt"], "@organizer")

    assert "Prizes: Mug, Shirt" in text
    assert 'href="tg://user?id=10"' in text
    assert "@organizer" in text


def test_results_message_lists_every_unit(lottery, winners):
    text = format_results_message(lottery, winners, "https://example.com")

    assert '- @alice won "Mug"' in text
    assert '- 2 won "Mug"' in text
    assert '- @alice won "Shirt"' in text


# Telegram delivery


@pytest.mark.asyncio
async def test_lottery_created_sends_join_button(bot, lottery):
    notifier = TelegramNotifier(bot, web_domain="https://example.com")

    await notifier.lottery_created(lottery, [Prize(name="Mug")])

    bot.send_message.assert_awaited_once()
    chat_id, text = bot.send_message.await_args.args
    markup = bot.send_message.await_args.kwargs["reply_markup"]
    assert chat_id == 10
    assert "Mug" in text
    assert markup.inline_keyboard[0][0].url == "https://t.me/lotto_bot?start=join_123456"


@pytest.mark.asyncio
async def test_winners_drawn_messages_each_winner_once(bot, lottery, winners):
    notifier = TelegramNotifier(bot, web_domain="https://example.com")

    await notifier.winners_drawn(lottery, winners)

    recipients = [c.args[0] for c in bot.send_message.await_args_list]
    assert recipients == [1, 2, 10]
    assert "Mug, Shirt" in bot.send_message.await_args_list[0].args[1]


@pytest.mark.asyncio
async def test_winners_drawn_skips_empty_draw(bot, lottery):
    notifier = TelegramNotifier(bot)

    await notifier.winners_drawn(lottery, [])

    bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_send_does_not_stop_other_recipients(bot, lottery, winners):
    bot.send_message.side_effect = [Exception("Forbidden: bot was blocked by the user"), None, None]
    notifier = TelegramNotifier(bot)

    await notifier.winners_drawn(lottery, winners)

    assert bot.send_message.await_count == 3


@pytest.mark.asyncio
async def test_unknown_creator_falls_back_to_generic_name(bot, lottery, winners):
    bot.get_chat.side_effect = Exception("chat not found")
    notifier = TelegramNotifier(bot)

    await notifier.winners_drawn(lottery, winners)

    assert "the organizer" in bot.send_message.await_args_list[0].args[1]


# Dispatcher


@pytest.mark.asyncio
async def test_dispatcher_delivers_in_order(lottery, winners):
    notifier = AsyncMock()
    dispatcher = NotificationDispatcher(notifier, queue_size=10)
    await dispatcher.start()

    assert dispatcher.submit_lottery_created(lottery, [Prize(name="Mug")]) is True
    assert dispatcher.submit_winners_drawn(lottery, winners) is True
    await dispatcher.stop(drain=True)

    notifier.lottery_created.assert_awaited_once()
    notifier.winners_drawn.assert_awaited_once_with(lottery, winners)
    assert dispatcher.running is False


@pytest.mark.asyncio
async def test_dispatcher_survives_notifier_errors(lottery, winners):
    notifier = AsyncMock()
    notifier.lottery_created.side_effect = RuntimeError("network down")
    dispatcher = NotificationDispatcher(notifier)
    await dispatcher.start()

    dispatcher.submit_lottery_created(lottery, [])
    dispatcher.submit_winners_drawn(lottery, winners)
    await dispatcher.drain()

    notifier.winners_drawn.assert_awaited_once()
    assert dispatcher.worker_task is not None and not dispatcher.worker_task.done()
    await dispatcher.stop()


@pytest.mark.asyncio
async def test_stop_gives_up_on_stuck_notifier(lottery):
    release = asyncio.Event()

    async def stuck(*args):
        await release.wait()

    notifier = AsyncMock()
    notifier.lottery_created.side_effect = stuck
    dispatcher = NotificationDispatcher(notifier, drain_timeout=0.05)
    await dispatcher.start()
    worker = dispatcher.worker_task

    dispatcher.submit_lottery_created(lottery, [])
    dispatcher.submit_lottery_created(lottery, [])
    await asyncio.wait_for(dispatcher.stop(drain=True), timeout=2)

    assert dispatcher.running is False
    assert worker.cancelled()
    assert dispatcher.worker_task is None
    notifier.lottery_created.assert_awaited_once()


@pytest.mark.asyncio
async def test_dispatcher_drops_events_when_full(lottery):
    dispatcher = NotificationDispatcher(AsyncMock(), queue_size=1)

    assert dispatcher.submit_lottery_created(lottery, []) is True
    assert dispatcher.submit_lottery_created(lottery, []) is False


@pytest.mark.asyncio
async def test_deliver_rejects_unknown_kind(lottery):
    dispatcher = NotificationDispatcher(AsyncMock())

    assert await dispatcher.deliver(NotificationEvent("reminder", lottery)) is False


@pytest.mark.asyncio
async def test_logging_notifier_accepts_events(lottery, winners):
    notifier = LoggingNotifier()

    await notifier.lottery_created(lottery, [])
    await notifier.winners_drawn(lottery, winners)
