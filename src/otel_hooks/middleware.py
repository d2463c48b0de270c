"""Server span around every incoming request.

:class:`RequestInstrumentation` is a plain ``handle(request, next)``
middleware. It opens one ``SERVER`` span per request, registers it in the
correlation store so logs and exceptions raised while handling the request
point at it, and always ends it on the way out. The host's response or
exception passes through untouched.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any, Callable, Dict, Optional

from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

from .attributes import request_payload, sanitize_parameters, status_text
from .correlation import CorrelationStore
from .exceptions import ExceptionRecord, is_recorded
from .host import HttpRequest, HttpResponse, bind_request
from .spans import SpanBuilder

if sys.platform != "win32":
    import resource
else:  # pragma: no cover - no rusage on Windows
    resource = None

_DIAGNOSTICS = logging.getLogger("otel_hooks.diagnostics")

Next = Callable[[HttpRequest], HttpResponse]


def span_name_for(request: HttpRequest) -> str:
    """``"<method> <route name | Controller@action | route uri | path>"``."""

    method = request.method.lower()
    route = request.route
    if route is not None:
        if route.name:
            return f"{method} {route.name}"
        if route.controller and "@" in route.controller:
            return f"{method} {route.controller}"
        return f"{method} {route.uri}"
    return f"{method} {request.path}"


def _peak_memory_bytes() -> Optional[int]:
    if resource is None:
        return None
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is kilobytes on Linux, bytes on macOS
    return peak if sys.platform == "darwin" else peak * 1024


def _content_length(response: HttpResponse) -> int:
    header = response.header("Content-Length")
    if header is not None:
        try:
            return int(header)
        except ValueError:
            pass
    return len(response.body.encode("utf-8")) if response.body else 0


class RequestInstrumentation:
    def __init__(
        self,
        builder: Optional[SpanBuilder] = None,
        *,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.builder = builder or SpanBuilder()
        self._clock = clock

    @property
    def correlation(self) -> CorrelationStore:
        return self.builder.correlation

    def _debug(self) -> bool:
        try:
            return self.builder.factory.get_setup_config().debug
        except Exception:
            return False

    def _report(self, stage: str, exc: BaseException) -> None:
        if self._debug():
            _DIAGNOSTICS.warning("Request instrumentation failed while %s: %s", stage, exc, exc_info=exc)

    def request_attributes(self, request: HttpRequest) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {
            "http.request_content_length": request.header("Content-Length") or 0,
            "http.request_content_type": request.header("Content-Type") or "unknown",
        }
        route = request.route
        if route is not None:
            attributes["http.route"] = route.name or route.uri
            if route.controller_class:
                attributes["http.controller"] = route.controller_class
            if route.action:
                attributes["http.action"] = route.action
            if route.parameters:
                attributes["http.route_params"] = json.dumps(
                    sanitize_parameters(route.parameters), default=str
                )
        payload = request_payload(request)
        if payload:
            attributes["http.request_data"] = payload
        return attributes

    def _start(self, request: HttpRequest) -> Optional[Span]:
        try:
            if not self.builder.factory.get_setup_config().enabled:
                return None
            return self.builder.create_span(
                span_name_for(request),
                self.request_attributes(request),
                kind=SpanKind.SERVER,
                register=True,
                normalize=False,
                request=request,
            )
        except Exception as exc:
            self._report("starting the request span", exc)
            return None

    def _record_response(self, span: Span, response: HttpResponse, started: float) -> None:
        try:
            code = response.status_code
            span.set_attribute("http.status_code", code)
            span.set_attribute("http.status_text", status_text(code))
            span.set_attribute("http.response_content_length", _content_length(response))
            span.set_attribute("http.response_content_type", response.header("Content-Type") or "unknown")
            span.set_attribute("http.response_time_ms", round((self._clock() - started) * 1000, 2))
            peak = _peak_memory_bytes()
            if peak is not None:
                span.set_attribute("process.peak_memory_usage_bytes", peak)
            if code >= 500:
                span.set_status(Status(StatusCode.ERROR, status_text(code)))
            else:
                span.set_status(Status(StatusCode.OK))
        except Exception as exc:
            self._report("recording the response", exc)

    def _record_failure(self, span: Span, exc: BaseException, started: float) -> None:
        try:
            record = ExceptionRecord.from_exception(exc)
            self.correlation.set_exception_id(record.exception_id)
            attributes = record.to_attributes()
            attributes["http.status_text"] = status_text(record.http_status_code)
            attributes["http.response_time_ms"] = round((self._clock() - started) * 1000, 2)
            span.set_attributes(attributes)
            if not is_recorded(exc):
                span.record_exception(exc, attributes={"exception.id": record.exception_id})
            span.set_status(Status(StatusCode.ERROR, record.message))
        except Exception as report_exc:
            self._report("recording the exception", report_exc)

    def handle(self, request: HttpRequest, next: Next) -> HttpResponse:
        self.correlation.clear()
        with bind_request(request):
            span = self._start(request)
            if span is None:
                return next(request)
            started = self._clock()
            try:
                with trace.use_span(
                    span, end_on_exit=False, record_exception=False, set_status_on_exception=False
                ):
                    response = next(request)
            except BaseException as exc:
                self._record_failure(span, exc, started)
                raise
            else:
                self._record_response(span, response, started)
                return response
            finally:
                span.end()
                self.correlation.clear()

    __call__ = handle


__all__ = ["RequestInstrumentation", "span_name_for"]
