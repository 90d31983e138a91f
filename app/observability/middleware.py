from __future__ import annotations

import random
import uuid
from typing import Any, Callable

import structlog

from app.config import Settings
from app.models.schemas import ErrorResponse
from app.observability.memory import memory_usage, to_memory_info
from app.observability.metrics import MetricsAccumulator
from app.pipeline.compression import compression_layer
from app.pipeline.response import OutgoingResponse, RequestContext, build_pipeline
from app.pipeline.timing import timing_layer


class ResponsePipelineMiddleware:
    """Request context, access logs, HTTP metrics, and the response finalize pipeline.

    The inner application's response is buffered and finalized once through
    timing -> compression -> socket.
    """

    def __init__(
        self,
        app: Callable[..., Any],
        *,
        metrics: MetricsAccumulator,
        settings: Settings,
        sampler: Callable[[], float] = random.random,
    ) -> None:
        self.app = app
        self.metrics = metrics
        self.settings = settings
        self._sampler = sampler
        self._health_paths = set(settings.health_paths)

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        context = RequestContext.from_scope(scope)
        request_id = str(uuid.uuid4())

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=context.path,
            method=context.method,
        )

        if context.path in self._health_paths:
            self._sample_memory(scope)

        async def send_raw(response: OutgoingResponse, body: bytes) -> None:
            response.body = body
            response.headers["Content-Length"] = str(len(body))
            await send(
                {
                    "type": "http.response.start",
                    "status": response.status_code,
                    "headers": response.headers.raw,
                }
            )
            await send({"type": "http.response.body", "body": body})

        finalize = build_pipeline(
            send_raw,
            timing_layer(context, slow_threshold_ms=self.settings.slow_request_threshold_ms),
            compression_layer(
                context,
                min_size=self.settings.compression_min_size,
                level=self.settings.compression_level,
            ),
        )

        response: OutgoingResponse | None = None
        chunks: list[bytes] = []

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal response

            if message.get("type") == "http.response.start":
                response = OutgoingResponse(
                    finalize,
                    status_code=int(message.get("status", 200)),
                    headers=message.get("headers", []),
                )
                response.headers["X-Request-ID"] = request_id
                return

            if message.get("type") == "http.response.body" and response is not None:
                chunks.append(message.get("body", b""))
                if not message.get("more_body", False):
                    await response.end(b"".join(chunks))
                return

            await send(message)

        try:
            try:
                await self.app(scope, receive, send_wrapper)
            except Exception:
                if response is not None and response.sent:
                    raise
                structlog.get_logger("errors").exception("unhandled_exception")
                response = OutgoingResponse(finalize, status_code=500)
                response.headers["X-Request-ID"] = request_id
                await response.json(ErrorResponse(error="Something went wrong").model_dump())
        finally:
            status_code = response.status_code if response is not None else 500

            self.metrics.record_completion(context.method, context.path, status_code)

            structlog.get_logger("access").info(
                "http_request",
                status_code=status_code,
                elapsed_ms=round(context.elapsed_ms(), 2),
            )

            structlog.contextvars.clear_contextvars()

    def _sample_memory(self, scope: dict[str, Any]) -> None:
        info = to_memory_info(memory_usage())
        # Starlette exposes scope["state"] as request.state.
        scope.setdefault("state", {})["memory_info"] = info

        if self._sampler() < self.settings.memory_log_sample_rate:
            structlog.get_logger("memory").info("memory_usage", **info.model_dump())
