from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialized with camelCase keys, as the frontend expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MemoryInfo(CamelModel):
    """Memory usage rounded to megabytes, e.g. ``"42 MB"``."""

    rss: str
    heap_total: str
    heap_used: str
    external: str


class MemoryUsage(CamelModel):
    """Raw memory usage in bytes."""

    rss: int
    heap_total: int
    heap_used: int
    external: int


class HealthResponse(CamelModel):
    status: Literal["OK"] = "OK"
    message: str = "Backend is running!"
    memory: MemoryInfo | Literal["Not available"] = "Not available"
    timestamp: datetime


class PerformanceStats(CamelModel):
    uptime: str
    total_requests: int
    requests_per_second: float
    error_count: int
    error_rate: str
    memory: MemoryUsage
    timestamp: datetime


class ErrorResponse(BaseModel):
    error: str
