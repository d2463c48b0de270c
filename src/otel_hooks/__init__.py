"""otel-hooks package entry point.

Event-driven OpenTelemetry instrumentation: hosts dispatch their lifecycle
events through an :class:`EventDispatcher`, wrap request handling with
:class:`RequestInstrumentation`, and the instrumentors turn both into spans
and correlated OTLP log records.
"""

from .config import TelemetryConfig
from .correlation import CorrelationStore
from .errors import (
    ConfigurationError,
    InstrumentationBootError,
    OtelHooksError,
    UnsupportedInstrumentation,
)
from .events import (
    CacheHit,
    CacheMissed,
    EventDispatcher,
    ExceptionOccurred,
    KeyForgotten,
    KeyWritten,
    MessageLogged,
    QueryExecuted,
    RequestSending,
    ResponseReceived,
)
from .facade import OtelHooks
from .host import (
    AuthenticatedUser,
    ClientRequest,
    ClientResponse,
    HttpRequest,
    HttpResponse,
    Route,
    bind_request,
)
from .logging_integration import MessageLoggedHandler
from .middleware import RequestInstrumentation
from .spans import SpanBuilder, normalize_name
from .telemetry import get_setup_config, get_tracer

__all__ = [
    "AuthenticatedUser",
    "CacheHit",
    "CacheMissed",
    "ClientRequest",
    "ClientResponse",
    "ConfigurationError",
    "CorrelationStore",
    "EventDispatcher",
    "ExceptionOccurred",
    "HttpRequest",
    "HttpResponse",
    "InstrumentationBootError",
    "KeyForgotten",
    "KeyWritten",
    "MessageLogged",
    "MessageLoggedHandler",
    "OtelHooks",
    "OtelHooksError",
    "QueryExecuted",
    "RequestInstrumentation",
    "RequestSending",
    "ResponseReceived",
    "Route",
    "SpanBuilder",
    "TelemetryConfig",
    "UnsupportedInstrumentation",
    "bind_request",
    "get_setup_config",
    "get_tracer",
    "normalize_name",
]

__version__ = "0.1.0"
