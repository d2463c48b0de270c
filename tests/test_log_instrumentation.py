"""Tests for log spans, log records and their correlation with the request."""

from __future__ import annotations

from urllib import error

from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode, format_span_id, format_trace_id

from conftest import RecordingOpener, attributes_of
from otel_hooks.events import MessageLogged
from otel_hooks.facade import OtelHooks
from otel_hooks.telemetry.logs import LogEmitter
from otel_hooks.telemetry.transport import CollectorTransport


def test_log_span_and_record(
    hooks: OtelHooks, span_exporter: InMemorySpanExporter, opener: RecordingOpener
) -> None:
    hooks.instrument("log")

    hooks.dispatcher.dispatch(MessageLogged("info", "user signed in", {"user_id": 7, "tags": ["a"]}))

    (span,) = span_exporter.get_finished_spans()
    assert span.name == "log.info"
    assert span.attributes["log.level"] == "info"
    assert span.attributes["log.message"] == "user signed in"
    assert span.attributes["log.context.user_id"] == 7
    assert span.attributes["log.context.tags"] == '["a"]'
    assert span.status.status_code is StatusCode.UNSET
    assert span.attributes["code.filepath"].endswith("test_log_instrumentation.py")
    assert span.attributes["code.function"] == "test_log_span_and_record"

    (record,) = opener.log_records()
    assert record["severityNumber"] == 9
    assert record["body"] == {"stringValue": "user signed in"}


def test_error_log_marks_span(hooks: OtelHooks, span_exporter: InMemorySpanExporter) -> None:
    hooks.instrument("log")

    hooks.dispatcher.dispatch(MessageLogged("ERROR", "payment failed"))

    (span,) = span_exporter.get_finished_spans()
    assert span.name == "log.error"
    assert span.status.status_code is StatusCode.ERROR
    assert span.attributes["error"] is True


def test_logs_carry_the_registered_request_ids(
    hooks: OtelHooks, span_exporter: InMemorySpanExporter, opener: RecordingOpener
) -> None:
    hooks.instrument("log")
    request_span = hooks.builder.create_span("get users.show", normalize=False)
    context = request_span.get_span_context()
    trace_id, span_id = format_trace_id(context.trace_id), format_span_id(context.span_id)

    hooks.dispatcher.dispatch(MessageLogged("warning", "slow query"))
    request_span.end()

    (record,) = opener.log_records()
    assert record["traceId"] == trace_id
    assert record["spanId"] == span_id
    assert attributes_of(record)["trace_id"] == trace_id
    log_span = span_exporter.get_finished_spans()[0]
    assert log_span.attributes["span_id"] == span_id
    # the log span itself never replaces the request in the store
    assert hooks.builder.correlation.get_current_trace() == (trace_id, span_id)


def test_caller_origin_from_event_wins(hooks: OtelHooks, span_exporter: InMemorySpanExporter) -> None:
    hooks.instrument("log")

    hooks.dispatcher.dispatch(
        MessageLogged("debug", "x", pathname="/srv/app/jobs.py", lineno=12, func_name="run")
    )

    (span,) = span_exporter.get_finished_spans()
    assert span.attributes["code.filepath"] == "/srv/app/jobs.py"
    assert span.attributes["code.lineno"] == 12
    assert span.attributes["code.function"] == "run"


def test_own_loggers_are_ignored(
    hooks: OtelHooks, span_exporter: InMemorySpanExporter, opener: RecordingOpener
) -> None:
    hooks.instrument("log")

    hooks.dispatcher.dispatch(MessageLogged("warning", "export failed", logger_name="otel_hooks.diagnostics"))

    assert span_exporter.get_finished_spans() == ()
    assert opener.requests == []


def test_unreachable_collector_does_not_raise(hooks: OtelHooks, span_exporter: InMemorySpanExporter) -> None:
    failing = RecordingOpener(failure=error.URLError("connection refused"))
    config = hooks.get_config()
    emitter = LogEmitter(config, CollectorTransport(config.endpoint_logs, opener=failing, sleep=lambda _: None))
    broken = OtelHooks(config, hooks.dispatcher, factory=hooks.factory, emitter=emitter)
    broken.instrument("log")

    hooks.dispatcher.dispatch(MessageLogged("critical", "disk full"))

    assert len(failing.requests) == 4
    assert [span.name for span in span_exporter.get_finished_spans()] == ["log.critical"]
