from __future__ import annotations

import structlog

from app.pipeline.response import FinalizeHandler, Layer, OutgoingResponse, RequestContext


DEFAULT_SLOW_REQUEST_THRESHOLD_MS = 1000.0


def timing_layer(
    context: RequestContext,
    *,
    slow_threshold_ms: float = DEFAULT_SLOW_REQUEST_THRESHOLD_MS,
) -> Layer:
    """Stamp ``X-Response-Time`` at the moment the response is finalized.

    Runs ahead of compression, so the reported time includes encoding cost.
    """

    def layer(next_handler: FinalizeHandler) -> FinalizeHandler:
        async def finalize(response: OutgoingResponse, body: bytes) -> None:
            elapsed_ms = context.elapsed_ms()
            response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"

            if elapsed_ms > slow_threshold_ms:
                structlog.get_logger("performance").warning(
                    "slow_request",
                    method=context.method,
                    path=context.path,
                    elapsed_ms=round(elapsed_ms, 2),
                )

            await next_handler(response, body)

        return finalize

    return layer
