"""Shared pytest fixtures: in-memory span capture and a recording collector."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterator, List, Optional
from urllib import error

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from otel_hooks.config import TelemetryConfig
from otel_hooks.correlation import CorrelationStore
from otel_hooks.events import EventDispatcher
from otel_hooks.facade import OtelHooks
from otel_hooks.spans import SpanBuilder
from otel_hooks.telemetry.logs import LogEmitter
from otel_hooks.telemetry.tracer import TracerFactory
from otel_hooks.telemetry.transport import CollectorTransport, TransportPolicy


class FakeResponse:
    def __init__(self, status: int = 200) -> None:
        self.status = status

    def getcode(self) -> int:
        return self.status

    def read(self) -> bytes:
        return b"{}"

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None


class RecordingOpener:
    """Stand-in for ``urllib.request.OpenerDirector`` that records every POST.

    ``statuses`` are answered in order (200 once exhausted); ``failure`` is
    raised on every call instead.
    """

    def __init__(self, statuses: Optional[List[int]] = None, failure: Optional[Exception] = None) -> None:
        self.requests: List[Any] = []
        self.timeouts: List[Optional[float]] = []
        self._statuses = list(statuses or [])
        self._failure = failure

    def open(self, req: Any, timeout: Optional[float] = None) -> FakeResponse:
        self.requests.append(req)
        self.timeouts.append(timeout)
        if self._failure is not None:
            raise self._failure
        status = self._statuses.pop(0) if self._statuses else 200
        if status >= 400:
            raise error.HTTPError(req.full_url, status, "collector error", hdrs=None, fp=None)
        return FakeResponse(status)

    def payloads(self) -> List[Dict[str, Any]]:
        return [json.loads(req.data) for req in self.requests]

    def log_records(self) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        for payload in self.payloads():
            for resource_logs in payload["resourceLogs"]:
                for scope_logs in resource_logs["scopeLogs"]:
                    records.extend(scope_logs["logRecords"])
        return records


def attributes_of(record: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten OTLP JSON ``[{key, value: {xValue}}]`` attributes into a dict."""

    flattened: Dict[str, Any] = {}
    for item in record.get("attributes", []):
        (value,) = item["value"].values()
        flattened[item["key"]] = value
    return flattened


@pytest.fixture(autouse=True)
def _clean_correlation() -> Iterator[None]:
    store = CorrelationStore()
    with store.scope():
        yield


@pytest.fixture
def config() -> TelemetryConfig:
    return TelemetryConfig(service_name="shop", service_version="1.2.3", environment="testing")


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def factory(config: TelemetryConfig, span_exporter: InMemorySpanExporter) -> Iterator[TracerFactory]:
    tracer_factory = TracerFactory(config, span_exporter=span_exporter)
    yield tracer_factory
    tracer_factory.shutdown()


@pytest.fixture
def opener() -> RecordingOpener:
    return RecordingOpener()


@pytest.fixture
def log_transport(config: TelemetryConfig, opener: RecordingOpener) -> CollectorTransport:
    return CollectorTransport(
        config.endpoint_logs,
        policy=TransportPolicy(timeout=config.timeout),
        opener=opener,
        sleep=lambda _: None,
    )


@pytest.fixture
def emitter(config: TelemetryConfig, log_transport: CollectorTransport) -> LogEmitter:
    return LogEmitter(config, log_transport)


@pytest.fixture
def dispatcher() -> EventDispatcher:
    return EventDispatcher()


@pytest.fixture
def builder(factory: TracerFactory) -> SpanBuilder:
    return SpanBuilder(factory, CorrelationStore())


@pytest.fixture
def hooks(
    config: TelemetryConfig,
    dispatcher: EventDispatcher,
    factory: TracerFactory,
    emitter: LogEmitter,
) -> OtelHooks:
    return OtelHooks(config, dispatcher, factory=factory, emitter=emitter)
