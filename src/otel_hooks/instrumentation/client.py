"""Outbound HTTP client spans.

A request span opens when a call is about to be sent and stays open until
the matching response is handled. Request and response are matched by the
``X-Otel-Request-Id`` header written into the outgoing request, next to the
W3C ``traceparent`` header.
"""

from __future__ import annotations

import threading
import uuid
from collections import OrderedDict
from typing import Any, Dict, Iterable, Optional

from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind, Status, StatusCode
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from ..attributes import sanitize_headers, status_severity, status_text, truncate
from ..events import RequestSending, ResponseReceived
from ..host import ClientRequest
from .base import Instrumentation, Subscription, guarded

REQUEST_ID_HEADER = "X-Otel-Request-Id"
RESPONSE_BODY_LIMIT = 1000
MAX_PENDING = 1024

_PROPAGATOR = TraceContextTextMapPropagator()


def _apply_status(span: Span, code: int) -> None:
    if code >= 500:
        span.set_status(Status(StatusCode.ERROR, "Server error"))
    elif code < 400:
        span.set_status(Status(StatusCode.OK))


class ClientInstrumentation(Instrumentation):
    name = "client"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._pending: "OrderedDict[str, Span]" = OrderedDict()
        self._lock = threading.Lock()

    def subscriptions(self) -> Iterable[Subscription]:
        return (
            (RequestSending, self.on_request_sending),
            (ResponseReceived, self.on_response_received),
        )

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _request_attributes(self, request: ClientRequest) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {
            "http.url": request.url,
            "http.method": request.method.upper(),
            "http.scheme": request.scheme,
            "http.host": request.host,
            "http.target": request.path,
            "net.peer.name": request.host,
        }
        if request.port is not None:
            attributes["net.peer.port"] = request.port
        user_agent = request.header("User-Agent")
        if user_agent:
            attributes["http.user_agent"] = user_agent
        for name, value in sanitize_headers(request.headers).items():
            attributes[f"http.request.header.{name}"] = value
        return attributes

    def _track(self, request_id: str, span: Span) -> None:
        with self._lock:
            self._pending[request_id] = span
            while len(self._pending) > MAX_PENDING:
                _, stale = self._pending.popitem(last=False)
                stale.end()

    def _release(self, request_id: Optional[str]) -> Optional[Span]:
        if not request_id:
            return None
        with self._lock:
            return self._pending.pop(request_id, None)

    @guarded
    def on_request_sending(self, event: RequestSending) -> None:
        request = event.request
        request_id = request.header(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.headers[REQUEST_ID_HEADER] = request_id

        attributes = self._request_attributes(request)
        attributes["http.request_id"] = request_id
        span = self.builder.create_span(
            f"http.client.{request.method.lower()}.{request.host}",
            attributes,
            kind=SpanKind.CLIENT,
            register=False,
        )
        _PROPAGATOR.inject(request.headers, context=trace.set_span_in_context(span))
        self._track(request_id, span)

    @guarded
    def on_response_received(self, event: ResponseReceived) -> None:
        request, response = event.request, event.response
        code = response.status_code
        parent = self._release(request.header(REQUEST_ID_HEADER))

        attributes: Dict[str, Any] = {
            "http.url": request.url,
            "http.method": request.method.upper(),
            "http.status_code": code,
            "http.status_text": status_text(code),
            "http.status_severity": status_severity(code),
        }
        if code >= 400 and response.body:
            attributes["http.response_body"] = truncate(response.body, RESPONSE_BODY_LIMIT)

        span = self.builder.create_span(
            f"http.client.response.{request.method.lower()}.{request.host}.{code}",
            attributes,
            kind=SpanKind.CLIENT,
            parent_span=parent,
            register=False,
        )
        _apply_status(span, code)
        span.end()

        if parent is not None:
            parent.set_attribute("http.status_code", code)
            parent.set_attribute("http.status_severity", status_severity(code))
            _apply_status(parent, code)
            parent.end()


__all__ = ["ClientInstrumentation", "REQUEST_ID_HEADER"]
