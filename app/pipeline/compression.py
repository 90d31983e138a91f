from __future__ import annotations

import gzip
import zlib
from typing import Callable, Mapping

import brotli
import structlog
from starlette.datastructures import MutableHeaders

from app.pipeline.response import FinalizeHandler, Layer, OutgoingResponse, RequestContext


Compressor = Callable[[bytes, int], bytes]

# Highest priority first.
ENCODING_PRIORITY = ("br", "gzip", "deflate")
DEFAULT_MIN_SIZE = 1024
DEFAULT_LEVEL = 6


def _brotli(data: bytes, level: int) -> bytes:
    return brotli.compress(data, quality=level)


def _gzip(data: bytes, level: int) -> bytes:
    return gzip.compress(data, compresslevel=level)


def _deflate(data: bytes, level: int) -> bytes:
    return zlib.compress(data, level)


COMPRESSORS: Mapping[str, Compressor] = {
    "br": _brotli,
    "gzip": _gzip,
    "deflate": _deflate,
}


def accepted_encodings(accept_encoding: str | None) -> set[str]:
    """Codings listed in an Accept-Encoding header, minus those with ``q=0``."""

    accepted: set[str] = set()
    for part in (accept_encoding or "").split(","):
        token, _, params = part.partition(";")
        token = token.strip().lower()
        if not token:
            continue

        quality = 1.0
        for param in params.split(";"):
            name, _, value = param.partition("=")
            if name.strip().lower() != "q":
                continue
            try:
                quality = float(value.strip())
            except ValueError:
                quality = 1.0
        if quality > 0:
            accepted.add(token)
    return accepted


def select_encoding(accept_encoding: str | None) -> str | None:
    accepted = accepted_encodings(accept_encoding)
    for encoding in ENCODING_PRIORITY:
        if encoding in accepted:
            return encoding
    return None


def should_compress(
    context: RequestContext,
    response: OutgoingResponse,
    body: bytes,
    min_size: int = DEFAULT_MIN_SIZE,
) -> bool:
    if "x-no-compression" in context.headers:
        return False
    if response.headers.get("content-encoding"):
        return False
    return len(body) >= min_size


def compress(
    body: bytes,
    encoding: str,
    level: int = DEFAULT_LEVEL,
    compressors: Mapping[str, Compressor] = COMPRESSORS,
) -> bytes:
    try:
        compressor = compressors[encoding]
    except KeyError as exc:
        raise ValueError(f"Unsupported content encoding: {encoding}") from exc
    return compressor(body, level)


def _add_vary(headers: MutableHeaders) -> None:
    vary = [value.strip().lower() for value in headers.get("vary", "").split(",")]
    if "accept-encoding" not in vary:
        headers.add_vary_header("Accept-Encoding")


def compression_layer(
    context: RequestContext,
    *,
    min_size: int = DEFAULT_MIN_SIZE,
    level: int = DEFAULT_LEVEL,
    compressors: Mapping[str, Compressor] = COMPRESSORS,
) -> Layer:
    """Compress the finalized body for clients that accept br, gzip or deflate.

    The result goes to the handler this layer wraps, never back through the
    outer pipeline. Encoder failures fall back to the original body.
    """

    def layer(next_handler: FinalizeHandler) -> FinalizeHandler:
        async def finalize(response: OutgoingResponse, body: bytes) -> None:
            encoding = select_encoding(context.headers.get("accept-encoding"))
            if encoding is None or not should_compress(context, response, body, min_size):
                await next_handler(response, body)
                return

            try:
                compressed = compress(body, encoding, level, compressors)
            except Exception:
                structlog.get_logger("compression").exception(
                    "compression_failed",
                    encoding=encoding,
                    size=len(body),
                )
                response.headers["Content-Length"] = str(len(body))
                await next_handler(response, body)
                return

            response.headers["Content-Encoding"] = encoding
            response.headers["Content-Length"] = str(len(compressed))
            _add_vary(response.headers)
            await next_handler(response, compressed)

        return finalize

    return layer
