"""Tests for the cache and query instrumentors."""

from __future__ import annotations

import json

from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind

from otel_hooks.events import CacheHit, CacheMissed, KeyForgotten, KeyWritten, QueryExecuted
from otel_hooks.facade import OtelHooks


def test_cache_miss_span(hooks: OtelHooks, span_exporter: InMemorySpanExporter) -> None:
    hooks.instrument("cache")

    hooks.dispatcher.dispatch(CacheMissed(key="user:42"))

    (span,) = span_exporter.get_finished_spans()
    assert span.name == "cache.miss"
    assert span.attributes["cache.key"] == "user:42"
    assert span.attributes["cache.driver"] == "default"
    assert span.end_time is not None


def test_cache_operations_each_produce_one_span(
    hooks: OtelHooks, span_exporter: InMemorySpanExporter
) -> None:
    hooks.instrument("cache")

    hooks.dispatcher.dispatch(CacheHit(key="a", value="1", store="redis"))
    hooks.dispatcher.dispatch(KeyWritten(key="b", value="2", ttl=60, store="redis"))
    hooks.dispatcher.dispatch(KeyForgotten(key="c"))

    spans = span_exporter.get_finished_spans()
    assert [span.name for span in spans] == ["cache.hit", "cache.write", "cache.forget"]
    assert spans[0].attributes["cache.driver"] == "redis"
    assert spans[1].attributes["cache.ttl"] == 60
    assert "cache.ttl" not in spans[2].attributes


def test_cache_spans_do_not_touch_correlation(hooks: OtelHooks) -> None:
    hooks.instrument("cache")

    hooks.dispatcher.dispatch(CacheHit(key="a"))

    assert hooks.builder.correlation.get_current_trace() == (None, None)


def test_query_span(hooks: OtelHooks, span_exporter: InMemorySpanExporter) -> None:
    hooks.instrument("query")

    hooks.dispatcher.dispatch(
        QueryExecuted(
            sql="select * from users where id = ?",
            bindings=[42],
            time=1.75,
            connection_name="primary",
            driver="pgsql",
        )
    )

    (span,) = span_exporter.get_finished_spans()
    assert span.name == "db.query"
    assert span.kind is SpanKind.CLIENT
    assert span.attributes["db.system"] == "pgsql"
    assert span.attributes["db.statement"] == "select * from users where id = ?"
    assert json.loads(span.attributes["db.bindings"]) == [42]
    assert span.attributes["db.time"] == 1.75
    assert span.attributes["db.connection_name"] == "primary"


def test_handler_failure_is_contained(
    hooks: OtelHooks, span_exporter: InMemorySpanExporter, monkeypatch
) -> None:
    instance = hooks.instrument("query")

    def explode(*args, **kwargs):
        raise RuntimeError("tracer broken")

    monkeypatch.setattr(instance.builder, "create_span", explode)

    hooks.dispatcher.dispatch(QueryExecuted(sql="select 1"))

    assert span_exporter.get_finished_spans() == ()
