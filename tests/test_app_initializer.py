"""Tests for application wiring."""

import asyncio
from dataclasses import replace

import pytest

from config import load_config
from core.app_initializer import ApplicationInitializer
from core.constants import LotteryStatus
from core.exceptions import ConnectionPoolError
from services.notification_service import LoggingNotifier


@pytest.fixture
def app_config(tmp_path):
    return replace(
        load_config(),
        database_path=str(tmp_path / "app.sqlite"),
        enable_bot=False,
        web_host="127.0.0.1",
        web_port=0,
        scheduler_interval=3600,
    )


@pytest.mark.asyncio
async def test_initialize_and_shutdown(app_config):
    app = ApplicationInitializer(app_config)
    await app.initialize()

    assert isinstance(app.dispatcher.notifier, LoggingNotifier)
    draft = await app.lottery_service.create_draft(creator_id=1)
    assert (await app.repository.get_lottery(draft.id)).status == LotteryStatus.DRAFT

    run_task = asyncio.create_task(app.run())
    await asyncio.sleep(0.05)
    assert app.scheduler.running is True

    app.request_stop()
    await asyncio.wait_for(run_task, timeout=5)

    assert app.scheduler.running is False
    assert app.dispatcher.running is False
    assert app.db_pool.initialized is False


@pytest.mark.asyncio
async def test_storage_failure_is_fatal(app_config, tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    app = ApplicationInitializer(replace(app_config, database_path=str(blocker / "app.sqlite")))

    with pytest.raises(ConnectionPoolError):
        await app.initialize()
    await app.cleanup()
