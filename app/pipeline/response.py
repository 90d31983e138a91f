"""Explicit response finalize pipeline.

Every response leaves the process through ``OutgoingResponse._finalize``, which
hands the body to a chain of handlers built with :func:`build_pipeline`. Layers
wrap the next handler instead of replacing methods on a shared object, and the
tagged ``ResponseState`` guarantees the chain runs once per request.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from time import perf_counter
from typing import Any, Awaitable, Callable, Iterable

from starlette.datastructures import Headers, MutableHeaders

from app.exceptions import ResponseAlreadySentError


FinalizeHandler = Callable[["OutgoingResponse", bytes], Awaitable[None]]
Layer = Callable[[FinalizeHandler], FinalizeHandler]


@dataclass(frozen=True)
class RequestContext:
    method: str
    path: str
    headers: Headers
    started_at: float

    @classmethod
    def from_scope(cls, scope: dict[str, Any]) -> "RequestContext":
        return cls(
            method=str(scope.get("method", "")),
            path=str(scope.get("path", "")),
            headers=Headers(scope=scope),
            started_at=perf_counter(),
        )

    def elapsed_ms(self) -> float:
        return max((perf_counter() - self.started_at) * 1000.0, 0.0)


class ResponseState(Enum):
    PENDING = "pending"
    SENT = "sent"


class OutgoingResponse:
    """Per-request response wrapper with a single finalize entry point."""

    def __init__(
        self,
        finalize: FinalizeHandler,
        status_code: int = 200,
        headers: Iterable[tuple[bytes, bytes]] | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers = MutableHeaders(raw=list(headers or []))
        self.body = b""
        self.state = ResponseState.PENDING
        self._finalize_handler = finalize

    @property
    def sent(self) -> bool:
        return self.state is ResponseState.SENT

    async def send(self, value: Any) -> None:
        """Finalize with an arbitrary value: bytes and text as-is, anything else as JSON."""

        if isinstance(value, (bytes, bytearray, memoryview)):
            await self._finalize(bytes(value), "application/octet-stream")
        elif isinstance(value, str):
            await self._finalize(value.encode("utf-8"), "text/plain; charset=utf-8")
        else:
            await self.json(value)

    async def json(self, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        await self._finalize(payload.encode("utf-8"), "application/json")

    async def end(self, data: bytes | str | None = None) -> None:
        if data is None:
            body = b""
        elif isinstance(data, str):
            body = data.encode("utf-8")
        else:
            body = bytes(data)
        await self._finalize(body, None)

    async def _finalize(self, body: bytes, content_type: str | None) -> None:
        if self.state is ResponseState.SENT:
            raise ResponseAlreadySentError("Response has already been sent")
        self.state = ResponseState.SENT

        if content_type is not None and "content-type" not in self.headers:
            self.headers["Content-Type"] = content_type
        await self._finalize_handler(self, body)


def build_pipeline(raw: FinalizeHandler, *layers: Layer) -> FinalizeHandler:
    """Compose layers around ``raw``; the first layer given runs first."""

    handler = raw
    for layer in reversed(layers):
        handler = layer(handler)
    return handler
