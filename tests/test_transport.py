"""Tests for the collector transport retry and compression behaviour."""

from __future__ import annotations

import gzip
import io
import threading
import zlib
from typing import List
from urllib import error

import pytest
from opentelemetry.exporter.otlp.proto.http import Compression

from conftest import RecordingOpener
from otel_hooks.telemetry.transport import (
    CONTENT_TYPE_PROTOBUF,
    CollectorTransport,
    TransportPolicy,
    coerce_compression,
)

ENDPOINT = "http://collector.test:4318/v1/logs"


def _transport(opener: RecordingOpener, sleeps: List[float], **kwargs) -> CollectorTransport:
    return CollectorTransport(ENDPOINT, opener=opener, sleep=sleeps.append, **kwargs)


def test_successful_post_uses_one_attempt() -> None:
    opener = RecordingOpener()
    sleeps: List[float] = []
    transport = _transport(opener, sleeps, policy=TransportPolicy(headers={"X-Tenant": "acme"}))

    result = transport.send(b'{"resourceLogs": []}')

    assert result.ok
    assert result.attempts == 1
    assert sleeps == []
    (req,) = opener.requests
    assert req.full_url == ENDPOINT
    assert req.get_method() == "POST"
    assert req.get_header("Content-type") == "application/json"
    assert req.get_header("X-tenant") == "acme"
    assert opener.timeouts == [5.0]


def test_retries_on_server_error_then_succeeds() -> None:
    opener = RecordingOpener(statuses=[503, 200])
    sleeps: List[float] = []

    result = _transport(opener, sleeps).send(b"{}")

    assert result.ok
    assert result.attempts == 2
    assert sleeps == [0.1]


def test_gives_up_after_three_retries_without_raising() -> None:
    opener = RecordingOpener(failure=error.URLError("connection refused"))
    sleeps: List[float] = []

    result = _transport(opener, sleeps).send(b"{}")

    assert not result.ok
    assert result.attempts == 4
    assert sleeps == [0.1, 0.1, 0.1]
    assert "connection refused" in result.error


def test_client_errors_are_not_retried() -> None:
    opener = RecordingOpener(statuses=[400])

    result = _transport(opener, []).send(b"{}")

    assert not result.ok
    assert result.attempts == 1
    assert result.status_code == 400


def test_gzip_and_deflate_compression() -> None:
    opener = RecordingOpener()
    payload = b'{"hello": "world"}'

    _transport(opener, [], compression="gzip", content_type=CONTENT_TYPE_PROTOBUF).send(payload)
    _transport(opener, [], compression=Compression.Deflate).send(payload)

    gzip_req, deflate_req = opener.requests
    assert gzip_req.get_header("Content-encoding") == "gzip"
    assert gzip_req.get_header("Content-type") == CONTENT_TYPE_PROTOBUF
    assert gzip.decompress(gzip_req.data) == payload
    assert deflate_req.get_header("Content-encoding") == "deflate"
    assert zlib.decompress(deflate_req.data) == payload


def test_coerce_compression() -> None:
    assert coerce_compression(None) is None
    assert coerce_compression("none") is None
    assert coerce_compression("GZIP") is Compression.Gzip
    with pytest.raises(ValueError):
        coerce_compression("brotli")
    with pytest.raises(TypeError):
        coerce_compression(3)


def test_http_error_responses_are_closed() -> None:
    bodies: List[io.BytesIO] = []

    class RejectingOpener:
        def open(self, req, timeout=None):
            body = io.BytesIO(b"bad payload")
            bodies.append(body)
            raise error.HTTPError(req.full_url, 400, "Bad Request", hdrs=None, fp=body)

    result = CollectorTransport(ENDPOINT, opener=RejectingOpener(), sleep=lambda _: None).send(b"{}")

    assert result.status_code == 400
    assert [body.closed for body in bodies] == [True]


def test_concurrent_sends_do_not_wait_on_each_other() -> None:
    workers = 3
    barrier = threading.Barrier(workers, timeout=2)
    serialized: List[int] = []

    class SlowOpener:
        def open(self, req, timeout=None):
            try:
                barrier.wait()
            except threading.BrokenBarrierError:
                serialized.append(1)
            raise error.URLError("collector down")

    transport = CollectorTransport(
        ENDPOINT, policy=TransportPolicy(max_retries=0), opener=SlowOpener(), sleep=lambda _: None
    )
    results = []
    threads = [threading.Thread(target=lambda: results.append(transport.send(b"{}"))) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert serialized == []
    assert [result.ok for result in results] == [False] * workers
