"""Tests for OTLP log record emission."""

from __future__ import annotations

import socket
from typing import List
from urllib import error

import pytest

from conftest import RecordingOpener, attributes_of
from otel_hooks.config import TelemetryConfig
from otel_hooks.telemetry.logs import LogEmitter, LogRecord, is_emitting
from otel_hooks.telemetry.transport import CollectorTransport


def test_send_log_posts_resource_logs(
    emitter: LogEmitter, opener: RecordingOpener, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("APP_URL", raising=False)
    record = LogRecord.from_level(
        "error", "payment failed", {"order.id": 7}, trace_id="a" * 32, span_id="b" * 16
    )

    assert emitter.send_log(record) is True

    (req,) = opener.requests
    assert req.full_url == "http://localhost:4318/v1/logs"
    assert req.get_header("Content-type") == "application/json"
    payload = opener.payloads()[0]
    resource = attributes_of(payload["resourceLogs"][0]["resource"])
    assert resource["service.name"] == "shop"
    assert resource["service.version"] == "1.2.3"
    assert resource["deployment.environment"] == "testing"
    assert resource["host.name"] == socket.gethostname()
    (encoded,) = opener.log_records()
    assert encoded["severityNumber"] == 17
    assert encoded["severityText"] == "ERROR"
    assert encoded["body"] == {"stringValue": "payment failed"}
    assert encoded["traceId"] == "a" * 32
    assert encoded["spanId"] == "b" * 16
    assert attributes_of(encoded)["order.id"] == "7"


def test_unreachable_collector_returns_false(config: TelemetryConfig) -> None:
    opener = RecordingOpener(failure=error.URLError("no route to host"))
    transport = CollectorTransport(config.endpoint_logs, opener=opener, sleep=lambda _: None)
    emitter = LogEmitter(config, transport)

    assert emitter.send_log(LogRecord.from_level("info", "lost")) is False
    assert len(opener.requests) == 4


def test_nested_emission_is_dropped(config: TelemetryConfig) -> None:
    nested: List[bool] = []

    class ReentrantOpener(RecordingOpener):
        def open(self, req, timeout=None):
            nested.append(is_emitting())
            nested.append(emitter.send_log(LogRecord.from_level("info", "inner")))
            return super().open(req, timeout)

    opener = ReentrantOpener()
    emitter = LogEmitter(config, CollectorTransport(config.endpoint_logs, opener=opener))

    assert emitter.send_log(LogRecord.from_level("info", "outer")) is True
    assert nested == [True, False]
    assert len(opener.requests) == 1
    assert not is_emitting()


def test_default_transport_uses_logs_endpoint_and_json() -> None:
    config = TelemetryConfig(endpoint_logs="https://collector.test/v1/logs", timeout=2.0)
    emitter = LogEmitter(config)

    assert emitter.transport.endpoint == "https://collector.test/v1/logs"
    assert emitter.transport.content_type == "application/json"
    assert emitter.transport.policy.timeout == 2.0
