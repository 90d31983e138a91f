from __future__ import annotations

import random
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.carapi import router as carapi_router
from app.api.metrics import router as metrics_router
from app.config import Settings, get_settings
from app.exceptions import CarApiError, CarApiValidationError
from app.models.schemas import ErrorResponse, HealthResponse
from app.observability.metrics import MetricsAccumulator
from app.observability.middleware import ResponsePipelineMiddleware
from app.services.car_api import CarApiClient, CarApiConfig


def create_app(
    settings: Settings | None = None,
    *,
    car_api_transport: httpx.AsyncBaseTransport | None = None,
    metrics: MetricsAccumulator | None = None,
    sampler: Callable[[], float] = random.random,
) -> FastAPI:
    """Build the application.

    Raises ``ConfigurationError`` when the car-API credential is missing, so a
    server started with ``uvicorn --factory app.main:create_app`` refuses to boot.
    """

    settings = settings or get_settings()
    car_api = CarApiClient(CarApiConfig.from_settings(settings), transport=car_api_transport)
    metrics = metrics or MetricsAccumulator(
        stats_log_interval=settings.stats_log_interval,
        error_log_interval=settings.error_log_interval,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            await car_api.aclose()

    app = FastAPI(title="Rent-a-Ride API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.car_api = car_api
    app.state.metrics = metrics

    app.include_router(carapi_router)
    app.include_router(metrics_router)

    # Added last so it wraps CORS and sees every response.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ResponsePipelineMiddleware, metrics=metrics, settings=settings, sampler=sampler)

    @app.exception_handler(CarApiValidationError)
    async def _car_api_validation_error(request: Request, exc: CarApiValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=ErrorResponse(error=str(exc)).model_dump())

    @app.exception_handler(CarApiError)
    async def _car_api_error(request: Request, exc: CarApiError) -> JSONResponse:
        return JSONResponse(status_code=502, content=ErrorResponse(error=str(exc)).model_dump())

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        memory = getattr(request.state, "memory_info", None)
        return HealthResponse(
            memory=memory or "Not available",
            timestamp=datetime.now(timezone.utc),
        )

    return app
