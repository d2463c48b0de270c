"""Common plumbing for event instrumentors."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Iterable, List, Optional, Tuple, TypeVar

from opentelemetry import trace
from opentelemetry.trace import format_span_id, format_trace_id

from ..config import TelemetryConfig
from ..correlation import CorrelationStore
from ..errors import InstrumentationBootError
from ..events import EventDispatcher
from ..spans import SpanBuilder
from ..telemetry.logs import LogEmitter

_DIAGNOSTICS = logging.getLogger("otel_hooks.diagnostics")

F = TypeVar("F", bound=Callable[..., Any])
Subscription = Tuple[type, Callable[[Any], None]]

OWN_LOGGERS = "otel_hooks"


def is_own_logger(name: Optional[str]) -> bool:
    """True for loggers in this package's namespace, which are never instrumented."""

    return bool(name) and name.split(".", 1)[0] == OWN_LOGGERS


def guarded(handler: F) -> F:
    """Keep a handler failure from reaching the host.

    Any :class:`Exception` is reported through
    :meth:`Instrumentation.report_failure` and the handler returns ``None``.
    """

    @wraps(handler)
    def wrapped(self: "Instrumentation", *args: Any, **kwargs: Any) -> Any:
        try:
            return handler(self, *args, **kwargs)
        except Exception as exc:
            self.report_failure(handler.__name__, exc)
            return None

    return wrapped  # type: ignore[return-value]


class Instrumentation:
    """Base class for instrumentors subscribed to an :class:`EventDispatcher`.

    Subclasses set :attr:`name` and return their ``(event type, handler)``
    pairs from :meth:`subscriptions`.
    """

    name: str = ""

    def __init__(
        self,
        config: TelemetryConfig,
        dispatcher: EventDispatcher,
        builder: SpanBuilder,
        emitter: Optional[LogEmitter] = None,
    ) -> None:
        self.config = config
        self.dispatcher = dispatcher
        self.builder = builder
        self.emitter = emitter
        self._subscribed: List[Subscription] = []

    @property
    def correlation(self) -> CorrelationStore:
        return self.builder.correlation

    @property
    def booted(self) -> bool:
        return bool(self._subscribed)

    def subscriptions(self) -> Iterable[Subscription]:
        raise NotImplementedError

    def boot(self) -> None:
        if self._subscribed:
            return
        try:
            for event_type, handler in self.subscriptions():
                self.dispatcher.listen(event_type, handler)
                self._subscribed.append((event_type, handler))
        except Exception as exc:
            self.unboot()
            raise InstrumentationBootError(f"Failed to boot {self.name} instrumentation.") from exc

    def unboot(self) -> None:
        for event_type, handler in self._subscribed:
            self.dispatcher.forget(event_type, handler)
        self._subscribed.clear()

    def report_failure(self, handler: str, exc: BaseException) -> None:
        if self.config.debug:
            _DIAGNOSTICS.warning(
                "%s instrumentation failed in %s: %s", self.name, handler, exc, exc_info=exc
            )

    def current_ids(self) -> Tuple[Optional[str], Optional[str]]:
        """Ids registered for the request, else those of the active span."""

        trace_id, span_id = self.correlation.get_current_trace()
        if trace_id:
            return trace_id, span_id
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            return format_trace_id(context.trace_id), format_span_id(context.span_id)
        return None, None

    def record_span(self, name: str, attributes: Optional[dict] = None, **kwargs: Any) -> Any:
        """Start and immediately end a point-in-time span."""

        span = self.builder.create_span(name, attributes, register=False, **kwargs)
        span.end()
        return span


__all__ = ["Instrumentation", "guarded", "is_own_logger"]
