from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.dependencies import get_metrics
from app.models.schemas import PerformanceStats
from app.observability.metrics import MetricsAccumulator


router = APIRouter(prefix="/api", tags=["metrics"])


@router.get("/performance", response_model=PerformanceStats)
async def performance(metrics: MetricsAccumulator = Depends(get_metrics)) -> PerformanceStats:
    return metrics.snapshot()
