"""aiohttp application serving health checks and Prometheus metrics."""

from __future__ import annotations

from typing import Optional

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from core.logger import get_logger
from database.repositories import LotteryRepository
from services.scheduler import AutoDrawScheduler
from utils.performance import PerformanceMonitor

logger = get_logger(__name__)

REPOSITORY_KEY = web.AppKey("repository", LotteryRepository)
MONITOR_KEY = web.AppKey("monitor", PerformanceMonitor)
SCHEDULER_KEY = web.AppKey("scheduler", AutoDrawScheduler)


async def live(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def ready(request: web.Request) -> web.Response:
    """Report ready only while the database answers."""
    repository = request.app[REPOSITORY_KEY]
    monitor = request.app[MONITOR_KEY]

    try:
        database_ok = await repository.ping()
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        database_ok = False

    data = {
        "status": "ok" if database_ok else "unavailable",
        "database": "ok" if database_ok else "error",
        "db_pool_size": repository.pool.pool_size,
        "host": monitor.gather_host_metrics(),
    }
    scheduler = request.app.get(SCHEDULER_KEY)
    if scheduler is not None:
        data["scheduler"] = {"running": scheduler.running, "state": scheduler.state.value}

    return web.json_response(data, status=200 if database_ok else 503)


async def metrics(request: web.Request) -> web.Response:
    return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})


def create_app(
    repository: LotteryRepository,
    monitor: Optional[PerformanceMonitor] = None,
    scheduler: Optional[AutoDrawScheduler] = None,
) -> web.Application:
    """Create the health and metrics application.

    Args:
        repository: Repository used for the database ping
        monitor: Metrics helper for host statistics
        scheduler: Scheduler whose state is reported, if running

    Returns:
        Configured aiohttp application
    """
    app = web.Application()
    app[REPOSITORY_KEY] = repository
    app[MONITOR_KEY] = monitor or PerformanceMonitor()
    if scheduler is not None:
        app[SCHEDULER_KEY] = scheduler

    app.router.add_get("/health/live", live)
    app.router.add_get("/health/ready", ready)
    app.router.add_get("/metrics", metrics)
    return app
