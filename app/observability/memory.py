from __future__ import annotations

import psutil

from app.models.schemas import MemoryInfo, MemoryUsage


_MB = 1024 * 1024


def memory_usage(process: psutil.Process | None = None) -> MemoryUsage:
    """Current process memory in bytes.

    ``heap_total`` is the virtual size and ``external`` the shared (mapped library)
    portion of the resident set; ``heap_used`` is the private part of the resident set.
    """

    info = (process or psutil.Process()).memory_info()
    shared = int(getattr(info, "shared", 0))
    return MemoryUsage(
        rss=info.rss,
        heap_total=info.vms,
        heap_used=max(info.rss - shared, 0),
        external=shared,
    )


def _megabytes(value: int) -> str:
    return f"{round(value / _MB)} MB"


def to_memory_info(usage: MemoryUsage) -> MemoryInfo:
    return MemoryInfo(
        rss=_megabytes(usage.rss),
        heap_total=_megabytes(usage.heap_total),
        heap_used=_megabytes(usage.heap_used),
        external=_megabytes(usage.external),
    )
