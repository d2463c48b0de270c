"""Span creation with normalized names and standard attributes."""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional, Union

from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind, format_span_id, format_trace_id

from .attributes import clean_attributes, host_identifier, sanitize_headers
from .correlation import CorrelationStore
from .host import HttpRequest, current_request
from .telemetry.tracer import TracerFactory, get_factory

MAX_NAME_LENGTH = 100

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_DOT_RUNS = re.compile(r"\.{2,}")
_UNDERSCORE_RUNS = re.compile(r"_{2,}")

_KINDS = {
    "server": SpanKind.SERVER,
    "client": SpanKind.CLIENT,
    "producer": SpanKind.PRODUCER,
    "consumer": SpanKind.CONSUMER,
    "internal": SpanKind.INTERNAL,
}


def normalize_name(name: str) -> str:
    """Normalize a span name.

    >>> normalize_name("Cache Read!!")
    'cache_read_'
    >>> normalize_name("CacheHit")
    'cache_hit'
    """

    text = _INVALID_CHARS.sub("_", name or "")
    text = _CAMEL_BOUNDARY.sub(r"\1_\2", text)
    text = text.lower()
    text = _DOT_RUNS.sub(".", text)
    text = _UNDERSCORE_RUNS.sub("_", text)
    return text[:MAX_NAME_LENGTH]


def resolve_kind(kind: Union[SpanKind, str, None]) -> SpanKind:
    if kind is None:
        return SpanKind.INTERNAL
    if isinstance(kind, SpanKind):
        return kind
    try:
        return _KINDS[kind.lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown span kind: {kind!r}") from exc


class SpanBuilder:
    """Start spans enriched with service, host, request and user attributes.

    Standard attributes are computed first and caller attributes are merged
    on top, so callers win on key collisions. The builder never ends a span;
    the caller owns its lifecycle.
    """

    def __init__(
        self,
        factory: Optional[TracerFactory] = None,
        correlation: Optional[CorrelationStore] = None,
    ) -> None:
        self._factory = factory
        self._correlation = correlation or CorrelationStore()

    @property
    def factory(self) -> TracerFactory:
        return self._factory or get_factory()

    @property
    def correlation(self) -> CorrelationStore:
        return self._correlation

    def standard_attributes(self, request: Optional[HttpRequest] = None) -> Dict[str, Any]:
        request = request if request is not None else current_request()
        attributes: Dict[str, Any] = dict(self.factory.get_resource_attributes())
        attributes["host.name"] = host_identifier(request)
        if request is None:
            return attributes

        attributes.update(
            {
                "http.method": request.method.upper(),
                "http.url": request.url,
                "http.scheme": request.scheme,
                "http.target": request.target,
                "http.user_agent": request.user_agent or "unknown",
            }
        )
        if request.host:
            attributes["http.host"] = request.host
        if request.client_ip:
            attributes["http.client_ip"] = request.client_ip

        user = request.user
        if user is not None:
            attributes["enduser.id"] = str(user.id)
            if user.email:
                attributes["enduser.email"] = user.email
            if user.name:
                attributes["enduser.name"] = user.name
            if user.roles:
                attributes["enduser.roles"] = ",".join(user.roles)

        for name, value in sanitize_headers(request.headers).items():
            attributes[f"http.request.header.{name}"] = value
        return attributes

    def create_span(
        self,
        operation_name: str,
        attributes: Optional[Mapping[str, Any]] = None,
        kind: Union[SpanKind, str, None] = None,
        parent_span: Optional[Span] = None,
        *,
        register: bool = True,
        normalize: bool = True,
        request: Optional[HttpRequest] = None,
    ) -> Span:
        """Start a span and, when ``register`` is set, make it current for correlation.

        ``normalize=False`` keeps ``operation_name`` verbatim (used for
        request spans whose name is ``"<method> <route>"``).
        """

        name = normalize_name(operation_name) if normalize else operation_name
        merged = self.standard_attributes(request)
        merged.update(clean_attributes(attributes or {}))

        context = trace.set_span_in_context(parent_span) if parent_span is not None else None
        span = self.factory.get_tracer().start_span(
            name,
            context=context,
            kind=resolve_kind(kind),
            attributes=merged,
        )
        if register:
            span_context = span.get_span_context()
            self._correlation.set_current_trace(
                format_trace_id(span_context.trace_id),
                format_span_id(span_context.span_id),
            )
        return span


__all__ = ["MAX_NAME_LENGTH", "SpanBuilder", "normalize_name", "resolve_kind"]
