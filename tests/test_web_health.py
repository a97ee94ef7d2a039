"""Tests for the health and metrics endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from aiohttp import test_utils

from core.exceptions import RepositoryError
from services.scheduler import AutoDrawScheduler
from web.app import create_app


@pytest_asyncio.fixture
async def client(repository, service):
    app = create_app(repository, scheduler=AutoDrawScheduler(service))
    async with test_utils.TestClient(test_utils.TestServer(app)) as test_client:
        yield test_client


@pytest.mark.asyncio
async def test_live(client):
    response = await client.get("/health/live")

    assert response.status == 200
    assert await response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ready_with_database(client):
    response = await client.get("/health/ready")
    data = await response.json()

    assert response.status == 200
    assert data["database"] == "ok"
    assert data["db_pool_size"] == 1
    assert data["scheduler"] == {"running": False, "state": "idle"}
    assert "memory_rss" in data["host"]


@pytest.mark.asyncio
async def test_ready_reports_database_failure():
    repository = MagicMock()
    repository.ping = AsyncMock(side_effect=RepositoryError("unable to open database file"))
    repository.pool.pool_size = 1

    async with test_utils.TestClient(test_utils.TestServer(create_app(repository))) as client:
        response = await client.get("/health/ready")
        data = await response.json()

    assert response.status == 503
    assert data["database"] == "error"
    assert "scheduler" not in data


@pytest.mark.asyncio
async def test_metrics_exposes_lottery_counters(client, service, make_active):
    lottery, _ = await make_active()
    await service.draw_with_retry(lottery.id)

    response = await client.get("/metrics")
    body = await response.text()

    assert response.status == 200
    assert "lottery_draws_total" in body
    assert 'outcome="drawn"' in body
