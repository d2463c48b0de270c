"""Tracer construction, OTLP encoding and collector transport."""

from .logs import LogEmitter, LogRecord
from .tracer import TracerFactory, get_factory, get_setup_config, get_tracer, set_factory
from .transport import CollectorTransport, TransportPolicy, TransportResult

__all__ = [
    "CollectorTransport",
    "LogEmitter",
    "LogRecord",
    "TracerFactory",
    "TransportPolicy",
    "TransportResult",
    "get_factory",
    "get_setup_config",
    "get_tracer",
    "set_factory",
]
