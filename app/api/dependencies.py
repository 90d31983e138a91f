from __future__ import annotations

from fastapi import Request

from app.observability.metrics import MetricsAccumulator
from app.services.car_api import CarApiClient


def get_car_api(request: Request) -> CarApiClient:
    return request.app.state.car_api


def get_metrics(request: Request) -> MetricsAccumulator:
    return request.app.state.metrics
