import gzip
from time import perf_counter

import pytest
from structlog.testing import capture_logs

from app.exceptions import ResponseAlreadySentError
from app.pipeline.compression import compression_layer
from app.pipeline.response import OutgoingResponse, ResponseState, build_pipeline
from app.pipeline.timing import timing_layer
from conftest import RecordingSender, json_body, make_context


async def test_send_text_sets_plain_content_type() -> None:
    sender = RecordingSender()
    response = OutgoingResponse(sender)
    await response.send("hello")

    assert response.headers["content-type"] == "text/plain; charset=utf-8"
    assert sender.calls == [b"hello"]


async def test_send_bytes_sets_octet_stream() -> None:
    sender = RecordingSender()
    response = OutgoingResponse(sender)
    await response.send(b"\x00\x01")

    assert response.headers["content-type"] == "application/octet-stream"
    assert sender.calls == [b"\x00\x01"]


async def test_send_object_is_serialized_as_json() -> None:
    sender = RecordingSender()
    response = OutgoingResponse(sender)
    await response.send({"make": "Toyota", "years": [2020, 2021]})

    assert response.headers["content-type"] == "application/json"
    assert sender.calls == [b'{"make":"Toyota","years":[2020,2021]}']


async def test_json_keeps_existing_content_type() -> None:
    sender = RecordingSender()
    response = OutgoingResponse(sender, headers=[(b"content-type", b"application/vnd.api+json")])
    await response.json({"ok": True})

    assert response.headers["content-type"] == "application/vnd.api+json"


async def test_end_without_data_sends_empty_body() -> None:
    sender = RecordingSender()
    response = OutgoingResponse(sender, status_code=204)
    await response.end()

    assert sender.calls == [b""]
    assert "content-type" not in response.headers
    assert response.sent


async def test_second_finalize_is_rejected_and_pipeline_runs_once() -> None:
    sender = RecordingSender()
    response = OutgoingResponse(sender)
    await response.json({"first": True})

    with pytest.raises(ResponseAlreadySentError):
        await response.send("second")
    with pytest.raises(ResponseAlreadySentError):
        await response.end()

    assert response.state is ResponseState.SENT
    assert sender.calls == [b'{"first":true}']


async def test_layers_run_in_the_order_given() -> None:
    order: list[str] = []

    def tagging(name: str):
        def layer(next_handler):
            async def finalize(response, body):
                order.append(name)
                await next_handler(response, body)

            return finalize

        return layer

    async def raw(response, body):
        order.append("raw")

    response = OutgoingResponse(build_pipeline(raw, tagging("outer"), tagging("inner")))
    await response.end(b"x")

    assert order == ["outer", "inner", "raw"]


async def test_timing_header_is_non_negative_duration() -> None:
    sender = RecordingSender()
    context = make_context()
    response = OutgoingResponse(build_pipeline(sender, timing_layer(context)))
    await response.end(b"ok")

    value = response.headers["x-response-time"]
    assert value.endswith("ms")
    assert float(value.removesuffix("ms")) >= 0


async def test_slow_request_logs_warning() -> None:
    sender = RecordingSender()
    context = make_context(path="/api/carapi/years", started_at=perf_counter() - 1.5)
    response = OutgoingResponse(build_pipeline(sender, timing_layer(context)))

    with capture_logs() as logs:
        await response.end(b"ok")

    assert len(logs) == 1
    assert logs[0]["event"] == "slow_request"
    assert logs[0]["log_level"] == "warning"
    assert logs[0]["method"] == "GET"
    assert logs[0]["path"] == "/api/carapi/years"
    assert logs[0]["elapsed_ms"] >= 1500


async def test_fast_request_does_not_log() -> None:
    sender = RecordingSender()
    context = make_context()
    response = OutgoingResponse(build_pipeline(sender, timing_layer(context, slow_threshold_ms=60_000)))

    with capture_logs() as logs:
        await response.end(b"ok")

    assert logs == []


async def test_timing_then_compression_yields_both_headers() -> None:
    sender = RecordingSender()
    body = json_body(3000)
    context = make_context({"accept-encoding": "gzip"})
    response = OutgoingResponse(build_pipeline(sender, timing_layer(context), compression_layer(context)))
    await response.end(body)

    assert response.headers["x-response-time"].endswith("ms")
    assert response.headers["content-encoding"] == "gzip"
    assert gzip.decompress(sender.calls[0]) == body
