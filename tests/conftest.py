from __future__ import annotations

import json
from collections.abc import AsyncIterator
from time import perf_counter
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from starlette.datastructures import Headers

from app.config import get_settings
from app.main import create_app
from app.observability.metrics import MetricsAccumulator
from app.pipeline.response import OutgoingResponse, RequestContext

CAR_API_BASE_URL = "https://carapi.test/api"


class FakeCarApi:
    """In-process stand-in for CarAPI, served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.status_code = 200
        self.error: Exception | None = None
        self.raw_body: str | None = None
        self.payloads: dict[str, Any] = {
            "/api/makes": {"collection": {"count": 2}, "data": [{"id": 1, "name": "Toyota"}, {"id": 2, "name": "Honda"}]},
            "/api/models": {"data": [{"id": 10, "make_id": 1, "name": "Corolla"}]},
            "/api/years": [2019, 2020, 2021],
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={"exception": "upstream exploded"})
        if self.raw_body is not None:
            return httpx.Response(200, text=self.raw_body)
        return httpx.Response(200, json=self.payloads.get(request.url.path, {}))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingSender:
    """Innermost finalize handler that keeps what it was asked to write."""

    def __init__(self) -> None:
        self.calls: list[bytes] = []

    async def __call__(self, response: OutgoingResponse, body: bytes) -> None:
        response.body = body
        self.calls.append(body)


def make_context(headers: dict[str, str] | None = None, path: str = "/api/carapi/makes", started_at: float | None = None) -> RequestContext:
    return RequestContext(
        method="GET",
        path=path,
        headers=Headers(headers=headers or {}),
        started_at=perf_counter() if started_at is None else started_at,
    )


def json_body(size: int) -> bytes:
    """A JSON document of at least ``size`` bytes."""

    items = []
    while len(json.dumps(items)) < size:
        items.append({"id": len(items), "name": f"Car model number {len(items)}"})
    return json.dumps(items).encode("utf-8")


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CAR_API_KEY", "test-key")
    monkeypatch.setenv("CAR_API_BASE_URL", CAR_API_BASE_URL)
    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


@pytest.fixture
def fake_car_api() -> FakeCarApi:
    return FakeCarApi()


@pytest.fixture
def metrics() -> MetricsAccumulator:
    return MetricsAccumulator()


@pytest.fixture
def app(fake_car_api: FakeCarApi, metrics: MetricsAccumulator):
    return create_app(car_api_transport=fake_car_api.transport(), metrics=metrics, sampler=lambda: 1.0)


@pytest.fixture
async def api_client(app) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
