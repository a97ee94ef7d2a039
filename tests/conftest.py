"""Pytest configuration and fixtures."""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import List, Tuple
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from core.constants import DrawMode
from database import LotteryRepository, OptimizedSQLitePool, run_migrations
from database.models import Lottery, Prize, Winner, utcnow
from services.lottery_service import JoinRequest, LotteryInput, LotteryService
from services.retry import RetryPolicy


class FakeClock:
    """Controllable replacement for ``utcnow``."""

    def __init__(self, now: datetime | None = None):
        self.now = now or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingDispatcher:
    """Collects submitted events instead of delivering them."""

    def __init__(self):
        self.created: List[Tuple[Lottery, List[Prize]]] = []
        self.drawn: List[Tuple[Lottery, List[Winner]]] = []

    def submit_lottery_created(self, lottery, prizes) -> bool:
        self.created.append((lottery, list(prizes)))
        return True

    def submit_winners_drawn(self, lottery, winners) -> bool:
        self.drawn.append((lottery, list(winners)))
        return True


@pytest_asyncio.fixture
async def db_pool(tmp_path):
    """Temporary database with the full schema."""
    pool = OptimizedSQLitePool(str(tmp_path / "lottery_test.sqlite"))
    await pool.init_pool()
    await run_migrations(pool)
    yield pool
    await pool.close()


@pytest_asyncio.fixture
async def repository(db_pool):
    return LotteryRepository(db_pool)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def fast_sleep():
    return AsyncMock()


@pytest_asyncio.fixture
async def service(repository, dispatcher, fast_sleep, clock):
    """Engine with throttling off, seeded randomness and no real sleeping."""
    lottery_service = LotteryService(
        repository,
        dispatcher,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.2, multiplier=2.0),
        sleep=fast_sleep,
        clock=clock,
        rng_factory=lambda: random.Random(1234),
        drafts_per_minute=0,
        drafts_per_day=0,
    )
    yield lottery_service
    await lottery_service.aclose()


@pytest.fixture
def make_active(service):
    """Factory creating an active lottery through draft + create_or_replace."""

    async def _make_active(
        creator_id: int = 100,
        prizes: List[Prize] | None = None,
        draw_mode: DrawMode = DrawMode.MANUAL,
        draw_time: datetime | None = None,
        max_entries: int | None = None,
        title: str = "Spring giveaway",
    ) -> Tuple[Lottery, List[Prize]]:
        draft = await service.create_draft(creator_id)
        return await service.create_or_replace(
            draft.id,
            LotteryInput(
                title=title,
                creator_id=creator_id,
                draw_mode=draw_mode,
                draw_time=draw_time,
                max_entries=max_entries,
                prizes=prizes if prizes is not None else [Prize(name="Gift card", quantity=1)],
            ),
        )

    return _make_active


@pytest.fixture
def join_users(service):
    """Join user ids 1..count into a lottery."""

    async def _join_users(lottery_id: str, count: int, start: int = 1):
        participants = []
        for user_id in range(start, start + count):
            participants.append(
                await service.join(lottery_id, JoinRequest(user_id=user_id, username=f"user{user_id}"))
            )
        return participants

    return _join_users
