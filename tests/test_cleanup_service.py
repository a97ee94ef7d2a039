"""Tests for the retention worker."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import RepositoryError
from services.cleanup_service import CleanupService


@pytest.mark.asyncio
async def test_run_once_removes_stale_drafts_and_tokens(service, repository, clock, make_active):
    stale = await service.create_draft(creator_id=1)
    active, _ = await make_active(creator_id=1)
    await service.issue_edit_token(active.id, requester_id=1, ttl=60)

    clock.advance(hours=2)
    fresh = await service.create_draft(creator_id=1)
    cleanup = CleanupService(repository, draft_max_age=3600, clock=clock)

    report = await cleanup.run_once()

    assert report.drafts_deleted == 1
    assert report.tokens_deleted == 1
    assert report.checkpointed is True
    assert report.errors == 0
    assert not await repository.lottery_exists(stale.id)
    assert await repository.lottery_exists(active.id)
    assert await repository.lottery_exists(fresh.id)


@pytest.mark.asyncio
async def test_failing_step_does_not_skip_others():
    repository = MagicMock()
    repository.delete_stale_drafts = AsyncMock(side_effect=RepositoryError("database is locked"))
    repository.delete_expired_tokens = AsyncMock(return_value=2)
    repository.checkpoint_wal = AsyncMock()
    cleanup = CleanupService(repository)

    report = await cleanup.run_once()

    assert report.errors == 1
    assert report.tokens_deleted == 2
    assert report.checkpointed is True


@pytest.mark.asyncio
async def test_start_and_stop():
    cleanup = CleanupService(MagicMock(), interval=3600)

    await cleanup.start()
    assert cleanup.running is True
    await cleanup.stop()

    assert cleanup.running is False
    assert cleanup.cleanup_task is None
