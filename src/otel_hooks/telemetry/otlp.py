"""OTLP/HTTP JSON encoders for spans and log records.

The shapes follow the OTLP JSON mapping: identifiers are lowercase hex,
64-bit integers and nanosecond timestamps are rendered as decimal strings,
and attribute values are a typed union of ``stringValue``, ``intValue``,
``doubleValue``, ``boolValue`` and ``arrayValue``.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence

from opentelemetry.trace import SpanKind, StatusCode, format_span_id, format_trace_id

from ..correlation import normalize_span_id, normalize_trace_id

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from opentelemetry.sdk.trace import ReadableSpan

    from .logs import LogRecord

# OTLP enum values: SPAN_KIND_UNSPECIFIED = 0, INTERNAL = 1, ...
_SPAN_KINDS = {
    SpanKind.INTERNAL: 1,
    SpanKind.SERVER: 2,
    SpanKind.CLIENT: 3,
    SpanKind.PRODUCER: 4,
    SpanKind.CONSUMER: 5,
}
_STATUS_CODES = {
    StatusCode.UNSET: 0,
    StatusCode.OK: 1,
    StatusCode.ERROR: 2,
}


def encode_value(value: Any) -> Dict[str, Any]:
    # bool first: it is a subclass of int
    if isinstance(value, bool):
        return {"boolValue": value}
    if isinstance(value, int):
        return {"intValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(item) for item in value]}}
    return {"stringValue": str(value)}


def encode_attributes(attributes: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"key": str(key), "value": encode_value(value)}
        for key, value in (attributes or {}).items()
        if value is not None
    ]


def encode_resource(attributes: Mapping[str, Any]) -> Dict[str, Any]:
    return {"attributes": encode_attributes(attributes)}


def encode_scope(name: str, version: Optional[str] = None) -> Dict[str, Any]:
    scope: Dict[str, Any] = {"name": name}
    if version:
        scope["version"] = version
    return scope


def encode_span(span: "ReadableSpan") -> Dict[str, Any]:
    context = span.get_span_context()
    encoded: Dict[str, Any] = {
        "traceId": format_trace_id(context.trace_id),
        "spanId": format_span_id(context.span_id),
        "name": span.name,
        "kind": _SPAN_KINDS.get(span.kind, 0),
        "startTimeUnixNano": str(span.start_time or 0),
        "endTimeUnixNano": str(span.end_time or 0),
        "attributes": encode_attributes(span.attributes),
        "status": {"code": _STATUS_CODES.get(span.status.status_code, 0)},
    }
    if span.parent is not None:
        encoded["parentSpanId"] = format_span_id(span.parent.span_id)
    if span.status.description:
        encoded["status"]["message"] = span.status.description
    if span.events:
        encoded["events"] = [
            {
                "timeUnixNano": str(event.timestamp),
                "name": event.name,
                "attributes": encode_attributes(event.attributes),
            }
            for event in span.events
        ]
    return encoded


def build_resource_spans(spans: Sequence["ReadableSpan"]) -> Dict[str, Any]:
    """Group spans by resource and instrumentation scope."""

    resources: Dict[int, Dict[str, Any]] = {}
    scopes: Dict[tuple, List[Dict[str, Any]]] = {}
    for span in spans:
        resource = span.resource
        resource_key = id(resource)
        if resource_key not in resources:
            resources[resource_key] = {
                "resource": encode_resource(resource.attributes if resource else {}),
                "scopeSpans": [],
            }
        scope = span.instrumentation_scope
        scope_name = scope.name if scope else ""
        scope_version = scope.version if scope else None
        key = (resource_key, scope_name, scope_version)
        if key not in scopes:
            entry: List[Dict[str, Any]] = []
            scopes[key] = entry
            resources[resource_key]["scopeSpans"].append(
                {"scope": encode_scope(scope_name, scope_version), "spans": entry}
            )
        scopes[key].append(encode_span(span))
    return {"resourceSpans": list(resources.values())}


def encode_log_record(record: "LogRecord") -> Dict[str, Any]:
    encoded: Dict[str, Any] = {
        "timeUnixNano": str(record.timestamp_nanos),
        "observedTimeUnixNano": str(record.timestamp_nanos),
        "severityNumber": record.severity_number,
        "severityText": record.severity_text,
        "body": {"stringValue": record.body},
        "attributes": encode_attributes(record.attributes),
    }
    if record.trace_id:
        encoded["traceId"] = normalize_trace_id(record.trace_id)
    if record.span_id:
        encoded["spanId"] = normalize_span_id(record.span_id)
    return encoded


def build_resource_logs(
    records: Iterable["LogRecord"],
    resource_attributes: Mapping[str, Any],
    scope_name: str,
    scope_version: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "resourceLogs": [
            {
                "resource": encode_resource(resource_attributes),
                "scopeLogs": [
                    {
                        "scope": encode_scope(scope_name, scope_version),
                        "logRecords": [encode_log_record(record) for record in records],
                    }
                ],
            }
        ]
    }


def dumps(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


__all__ = [
    "build_resource_logs",
    "build_resource_spans",
    "dumps",
    "encode_attributes",
    "encode_log_record",
    "encode_resource",
    "encode_span",
    "encode_value",
]
