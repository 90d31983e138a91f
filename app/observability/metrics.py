from __future__ import annotations

import time
from datetime import datetime, timezone
from threading import Lock
from typing import Callable

import structlog

from app.models.schemas import MemoryUsage, PerformanceStats
from app.observability.memory import memory_usage


DEFAULT_STATS_LOG_INTERVAL = 1000
DEFAULT_ERROR_LOG_INTERVAL = 50


def _per_second(count: int, uptime_s: float) -> float:
    if uptime_s <= 0:
        return 0.0
    return count / uptime_s


class MetricsAccumulator:
    """Thread-safe, process-local request and error totals (resets on restart).

    One instance lives on the application and is handed to the middleware that
    reports request completions.
    """

    def __init__(
        self,
        *,
        stats_log_interval: int = DEFAULT_STATS_LOG_INTERVAL,
        error_log_interval: int = DEFAULT_ERROR_LOG_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        memory_reader: Callable[[], MemoryUsage] = memory_usage,
    ) -> None:
        self._lock = Lock()
        self._clock = clock
        self._memory_reader = memory_reader
        self.stats_log_interval = stats_log_interval
        self.error_log_interval = error_log_interval
        self.started_at: float = clock()
        self.request_count: int = 0
        self.error_count: int = 0

    def uptime_s(self) -> float:
        return max(self._clock() - self.started_at, 0.0)

    def record_completion(self, method: str, path: str, status_code: int) -> None:
        with self._lock:
            self.request_count += 1
            is_error = status_code >= 400
            if is_error:
                self.error_count += 1
            request_count = self.request_count
            error_count = self.error_count

        logger = structlog.get_logger("metrics")

        if request_count % self.stats_log_interval == 0:
            uptime = self.uptime_s()
            logger.info(
                "request_stats",
                total_requests=request_count,
                requests_per_second=round(_per_second(request_count, uptime), 2),
                uptime_s=round(uptime),
            )

        if not is_error:
            return

        if status_code >= 500:
            logger.error("server_error", status_code=status_code, method=method, path=path)
        else:
            logger.warning("client_error", status_code=status_code, method=method, path=path)

        if error_count % self.error_log_interval == 0:
            logger.error(
                "error_rate",
                error_rate_pct=round(error_count / request_count * 100, 2),
                error_count=error_count,
                total_requests=request_count,
            )

    def snapshot(self) -> PerformanceStats:
        with self._lock:
            request_count = self.request_count
            error_count = self.error_count
        uptime = self.uptime_s()
        error_rate = error_count / request_count * 100 if request_count else 0.0

        return PerformanceStats(
            uptime=f"{round(uptime)}s",
            total_requests=request_count,
            requests_per_second=round(_per_second(request_count, uptime), 2),
            error_count=error_count,
            error_rate=f"{error_rate:.2f}%",
            memory=self._memory_reader(),
            timestamp=datetime.now(timezone.utc),
        )
