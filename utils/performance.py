"""Performance monitoring utilities using Prometheus metrics."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

import psutil
from prometheus_client import Counter, Gauge, Histogram


draws_total = Counter("lottery_draws_total", "Draw attempts by trigger and outcome", labelnames=("source", "outcome"))
draw_duration = Histogram("lottery_draw_duration_seconds", "Draw transaction duration")
draw_retries = Counter("lottery_draw_retries_total", "Draw attempts that were retried")
winners_total = Counter("lottery_winners_total", "Prize units awarded")
participants_joined = Counter("lottery_participants_joined_total", "Successful joins")
scheduler_cycles = Counter("lottery_scheduler_cycles_total", "Scheduler polling cycles", labelnames=("result",))
due_lotteries = Gauge("lottery_due_lotteries", "Due lotteries found by the last scheduler cycle")
notification_failures = Counter(
    "lottery_notification_failures_total", "Undelivered notifications", labelnames=("kind",)
)
notification_queue = Gauge("lottery_notification_queue_size", "Pending notification events")
lotteries_by_status = Gauge("lottery_lotteries", "Lotteries per status", labelnames=("status",))
db_connections = Gauge("db_connection_pool_size", "DB connection pool size")


class PerformanceMonitor:
    def __init__(self) -> None:
        self.metrics = {
            "draws_total": draws_total,
            "draw_duration": draw_duration,
            "draw_retries": draw_retries,
            "winners_total": winners_total,
            "participants_joined": participants_joined,
            "scheduler_cycles": scheduler_cycles,
            "due_lotteries": due_lotteries,
            "notification_failures": notification_failures,
            "notification_queue": notification_queue,
            "lotteries_by_status": lotteries_by_status,
            "db_connections": db_connections,
        }

    @contextmanager
    def track_draw(self) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            draw_duration.observe(time.perf_counter() - start)

    def record_draw(self, source: str, outcome: str) -> None:
        draws_total.labels(source=source, outcome=outcome).inc()

    def record_winners(self, count: int) -> None:
        winners_total.inc(count)

    def record_retry(self) -> None:
        draw_retries.inc()

    def record_join(self) -> None:
        participants_joined.inc()

    def record_scheduler_cycle(self, due: int, failed: bool = False) -> None:
        scheduler_cycles.labels(result="error" if failed else "ok").inc()
        if not failed:
            due_lotteries.set(due)

    def record_notification_failure(self, kind: str) -> None:
        notification_failures.labels(kind=kind).inc()

    def record_queue_size(self, size: int) -> None:
        notification_queue.set(size)

    def record_db_pool(self, pool_size: int) -> None:
        db_connections.set(pool_size)

    def record_lottery_stats(self, draft: int, active: int, completed: int) -> None:
        lotteries_by_status.labels(status="draft").set(draft)
        lotteries_by_status.labels(status="active").set(active)
        lotteries_by_status.labels(status="completed").set(completed)

    def gather_host_metrics(self) -> dict:
        process = psutil.Process()
        memory_info = process.memory_info()
        return {
            "memory_rss": memory_info.rss,
            "cpu_percent": process.cpu_percent(interval=None),
        }
