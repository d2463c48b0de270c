"""Exception recording on spans plus an OTLP error log record."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Optional, Tuple

from opentelemetry import trace
from opentelemetry.trace import (
    NonRecordingSpan,
    Span,
    SpanContext,
    Status,
    StatusCode,
    TraceFlags,
    format_span_id,
    format_trace_id,
)

from ..attributes import (
    clean_attributes,
    sanitize_headers,
    sanitize_parameters,
    status_text,
    truncate_values,
)
from ..events import ExceptionOccurred, MessageLogged
from ..exceptions import ExceptionRecord, is_recorded, mark_recorded
from ..host import HttpRequest, current_request
from ..telemetry.logs import LogRecord
from .base import Instrumentation, Subscription, guarded, is_own_logger


def request_attributes(request: Optional[HttpRequest]) -> Dict[str, Any]:
    """Request details worth attaching to an exception."""

    if request is None:
        return {}
    attributes: Dict[str, Any] = {
        "http.method": request.method.upper(),
        "http.url": request.url,
    }
    route = request.route
    if route is not None:
        attributes["http.route"] = route.name or route.uri
        if route.controller_class:
            attributes["http.controller"] = route.controller_class
        if route.action:
            attributes["http.action"] = route.action
    if request.input:
        attributes["http.request.params"] = json.dumps(
            truncate_values(sanitize_parameters(request.input)), default=str
        )
    headers = sanitize_headers(request.headers)
    if headers:
        attributes["http.request.headers"] = json.dumps(headers)
    return attributes


class ExceptionInstrumentation(Instrumentation):
    """Record exceptions raised by the host.

    When a span is recording on the current context the exception is added to
    it; otherwise a short-lived ``exception.<class>`` (or ``http.error.<status>``)
    span is opened under the request's trace. Each exception object is
    recorded once, whichever event reports it first.
    """

    name = "exception"

    def subscriptions(self) -> Iterable[Subscription]:
        return (
            (ExceptionOccurred, self.handle_exception),
            (MessageLogged, self.handle_logged_exception),
        )

    @guarded
    def handle_exception(self, event: ExceptionOccurred) -> None:
        self.record(event.exception, event.request)

    @guarded
    def handle_logged_exception(self, event: MessageLogged) -> None:
        if is_own_logger(event.logger_name):
            return
        exception = event.exception
        if exception is not None:
            self.record(exception)

    def _parent(self) -> Optional[Span]:
        trace_id, span_id = self.correlation.get_current_trace()
        if not trace_id or not span_id:
            return None
        context = SpanContext(
            trace_id=int(trace_id, 16),
            span_id=int(span_id, 16),
            is_remote=False,
            trace_flags=TraceFlags(TraceFlags.SAMPLED),
        )
        if not context.is_valid:
            return None
        return NonRecordingSpan(context)

    def _record_on_active(
        self, active: Span, exception: BaseException, record: ExceptionRecord, attributes: Dict[str, Any]
    ) -> None:
        active.set_attributes(clean_attributes(attributes))
        active.record_exception(exception, attributes={"exception.id": record.exception_id})
        active.set_status(Status(StatusCode.ERROR, record.message))

    def _record_on_new_span(
        self, exception: BaseException, record: ExceptionRecord, attributes: Dict[str, Any]
    ) -> Tuple[str, str]:
        span = self.builder.create_span(
            record.span_name, attributes, parent_span=self._parent(), register=False
        )
        span.record_exception(exception, attributes={"exception.id": record.exception_id})
        span.set_status(Status(StatusCode.ERROR, record.message))
        span.end()
        context = span.get_span_context()
        return format_trace_id(context.trace_id), format_span_id(context.span_id)

    def record(self, exception: BaseException, request: Optional[HttpRequest] = None) -> None:
        if is_recorded(exception):
            return
        record = ExceptionRecord.from_exception(exception)
        self.correlation.set_exception_id(record.exception_id)

        attributes = record.to_attributes()
        attributes["http.status_text"] = status_text(record.http_status_code)
        attributes.update(request_attributes(request if request is not None else current_request()))

        trace_id, span_id = self.current_ids()
        active = trace.get_current_span()
        if active.is_recording():
            self._record_on_active(active, exception, record, attributes)
        else:
            own_trace_id, own_span_id = self._record_on_new_span(exception, record, attributes)
            if not trace_id:
                trace_id, span_id = own_trace_id, own_span_id
        mark_recorded(exception)

        if self.emitter is not None:
            body = f"{record.short_type}: {record.message}" if record.message else record.short_type
            log_attributes = {key: value for key, value in attributes.items() if value is not None}
            log_attributes["exception_id"] = record.exception_id
            self.emitter.send_log(
                LogRecord.from_level("error", body, log_attributes, trace_id=trace_id, span_id=span_id)
            )


__all__ = ["ExceptionInstrumentation", "request_attributes"]
