"""Bounded retry for draw attempts."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Iterator, Optional

from core.constants import RetryDefaults
from core.exceptions import (
    LotteryEndedError,
    LotteryNotActiveError,
    LotteryNotFoundError,
)
from core.logger import get_logger

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]
DrawFunc = Callable[[str], Awaitable[Any]]

# Another trigger already settled the lottery
SETTLED_ERRORS = (LotteryEndedError, LotteryNotActiveError, LotteryNotFoundError)


class DrawOutcome(str, Enum):
    DRAWN = "drawn"
    SETTLED = "settled"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = RetryDefaults.MAX_ATTEMPTS
    base_delay: float = RetryDefaults.BASE_DELAY
    multiplier: float = RetryDefaults.MULTIPLIER

    def delays(self) -> Iterator[float]:
        """Pauses between consecutive attempts (``max_attempts - 1`` values)."""
        delay = self.base_delay
        for _ in range(max(0, self.max_attempts - 1)):
            yield delay
            delay *= self.multiplier


async def draw_with_retry(
    draw: DrawFunc,
    lottery_id: str,
    policy: RetryPolicy = RetryPolicy(),
    sleep: SleepFunc = asyncio.sleep,
    source: str = "manual",
    on_retry: Optional[Callable[[int, Exception], Any]] = None,
) -> DrawOutcome:
    """Draw a lottery, tolerating races and retrying transient failures.

    Never raises for draw failures: the lottery stays due and the next
    scheduler cycle picks it up again.

    Args:
        draw: Coroutine function performing one draw attempt
        lottery_id: Lottery to draw
        policy: Attempt ceiling and backoff
        sleep: Awaitable sleep, injectable for tests
        source: Trigger name used in log lines
        on_retry: Called with the attempt number and error before each retry

    Returns:
        DRAWN on success, SETTLED when the lottery was already completed,
        inactive or gone, FAILED once every attempt failed
    """
    delays = policy.delays()
    attempts = max(1, policy.max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            await draw(lottery_id)
        except SETTLED_ERRORS as exc:
            logger.debug(f"{source} draw of {lottery_id} skipped: {exc.code}")
            return DrawOutcome.SETTLED
        except Exception as exc:
            if attempt == attempts:
                logger.error(
                    f"{source} auto draw failed for {lottery_id} after {attempts} attempts: {exc}",
                    exc_info=True,
                )
                return DrawOutcome.FAILED
            delay = next(delays, policy.base_delay)
            logger.warning(
                f"{source} draw attempt {attempt}/{attempts} for {lottery_id} failed: {exc}; "
                f"retrying in {delay:.2f}s"
            )
            if on_retry is not None:
                on_retry(attempt, exc)
            await sleep(delay)
        else:
            return DrawOutcome.DRAWN

    return DrawOutcome.FAILED
