"""Unit tests for the bounded draw retry."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import (
    LotteryEndedError,
    LotteryNotActiveError,
    LotteryNotFoundError,
    RepositoryError,
)
from services.retry import DrawOutcome, RetryPolicy, draw_with_retry


def test_policy_delays_grow_exponentially():
    policy = RetryPolicy(max_attempts=4, base_delay=0.5, multiplier=3.0)
    assert list(policy.delays()) == [0.5, 1.5, 4.5]


def test_single_attempt_policy_has_no_delays():
    assert list(RetryPolicy(max_attempts=1).delays()) == []


@pytest.mark.asyncio
async def test_first_attempt_success():
    draw = AsyncMock(return_value=[])
    sleep = AsyncMock()

    outcome = await draw_with_retry(draw, "123456", sleep=sleep)

    assert outcome == DrawOutcome.DRAWN
    draw.assert_awaited_once_with("123456")
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_transient_errors_are_retried_with_backoff():
    draw = AsyncMock(side_effect=[RepositoryError("locked"), RepositoryError("locked"), []])
    sleep = AsyncMock()
    on_retry = MagicMock()

    outcome = await draw_with_retry(
        draw,
        "123456",
        policy=RetryPolicy(max_attempts=3, base_delay=0.2, multiplier=2.0),
        sleep=sleep,
        on_retry=on_retry,
    )

    assert outcome == DrawOutcome.DRAWN
    assert draw.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == pytest.approx([0.2, 0.4])
    assert on_retry.call_count == 2


@pytest.mark.asyncio
async def test_exhausted_attempts_report_failure():
    draw = AsyncMock(side_effect=RuntimeError("disk I/O error"))
    sleep = AsyncMock()

    outcome = await draw_with_retry(draw, "123456", policy=RetryPolicy(max_attempts=3), sleep=sleep)

    assert outcome == DrawOutcome.FAILED
    assert draw.await_count == 3
    assert sleep.await_count == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [LotteryEndedError, LotteryNotActiveError, LotteryNotFoundError])
async def test_settled_lottery_is_not_retried(error):
    draw = AsyncMock(side_effect=error("already handled"))
    sleep = AsyncMock()

    outcome = await draw_with_retry(draw, "123456", sleep=sleep, source="scheduler")

    assert outcome == DrawOutcome.SETTLED
    draw.assert_awaited_once()
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_settled_after_transient_failure():
    draw = AsyncMock(side_effect=[RepositoryError("busy"), LotteryEndedError("drawn elsewhere")])
    sleep = AsyncMock()

    outcome = await draw_with_retry(draw, "123456", sleep=sleep)

    assert outcome == DrawOutcome.SETTLED
    assert draw.await_count == 2
