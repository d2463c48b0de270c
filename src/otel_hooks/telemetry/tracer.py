"""Process-wide tracer construction.

:class:`TracerFactory` turns a :class:`TelemetryConfig` into a transport, a
span exporter, a span processor, a resource and finally a named tracer. The
tracer is built lazily on first use and memoized; every later call returns
the same instance.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from ..config import TelemetryConfig
from ..errors import ConfigurationError
from .transport import CollectorTransport, TransportPolicy

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import SpanExporter
    from opentelemetry.trace import Tracer
else:  # pragma: no cover - resolved lazily by _load_opentelemetry
    TracerProvider = Any  # type: ignore[assignment]
    SpanExporter = Any  # type: ignore[assignment]
    Tracer = Any  # type: ignore[assignment]

_LOGGER = logging.getLogger(__name__)

# BatchSpanProcessor default; it must not exceed max_queue_size
MAX_EXPORT_BATCH_SIZE = 512


def _load_opentelemetry() -> Dict[str, Any]:
    try:
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

        from .exporters import CONTENT_TYPES, OTLPHttpSpanExporter
    except ImportError as exc:
        raise ConfigurationError.missing_sdk(exc.name or "opentelemetry.sdk") from exc

    return {
        "Resource": Resource,
        "TracerProvider": TracerProvider,
        "SimpleSpanProcessor": SimpleSpanProcessor,
        "BatchSpanProcessor": BatchSpanProcessor,
        "OTLPHttpSpanExporter": OTLPHttpSpanExporter,
        "CONTENT_TYPES": CONTENT_TYPES,
    }


class TracerFactory:
    """Build and memoize the tracer bound to the configured collector.

    Parameters
    ----------
    config:
        Configuration to use. When omitted ``config_loader`` is called once
        on first access.
    config_loader:
        Zero-argument callable returning a :class:`TelemetryConfig`;
        defaults to :meth:`TelemetryConfig.from_env`.
    span_exporter:
        Replace the OTLP exporter, e.g. with an in-memory exporter in tests.
    transport:
        Replace the HTTP transport used by the default exporter.
    """

    def __init__(
        self,
        config: Optional[TelemetryConfig] = None,
        *,
        config_loader: Callable[[], TelemetryConfig] = TelemetryConfig.from_env,
        span_exporter: Optional[SpanExporter] = None,
        transport: Optional[CollectorTransport] = None,
    ) -> None:
        self._config = config
        self._config_loader = config_loader
        self._span_exporter = span_exporter
        self._transport = transport
        self._provider: Optional[TracerProvider] = None
        self._tracer: Optional[Tracer] = None
        self._lock = threading.RLock()

    def get_setup_config(self) -> TelemetryConfig:
        with self._lock:
            if self._config is None:
                self._config = self._config_loader()
            return self._config

    def get_resource_attributes(self) -> Dict[str, Any]:
        return self.get_setup_config().resource_attributes()

    def get_transport(self) -> CollectorTransport:
        with self._lock:
            if self._transport is None:
                modules = _load_opentelemetry()
                config = self.get_setup_config()
                self._transport = CollectorTransport(
                    config.endpoint_traces,
                    modules["CONTENT_TYPES"][config.protocol],
                    policy=TransportPolicy(
                        timeout=config.timeout,
                        retry_delay=config.retry_delay,
                        max_retries=config.max_retries,
                        verify_tls=config.verify_tls,
                        headers=config.headers,
                    ),
                    compression=config.compression,
                )
            return self._transport

    def get_exporter(self) -> SpanExporter:
        with self._lock:
            if self._span_exporter is None:
                modules = _load_opentelemetry()
                self._span_exporter = modules["OTLPHttpSpanExporter"](
                    self.get_transport(), self.get_setup_config().protocol
                )
            return self._span_exporter

    def get_tracer_provider(self) -> TracerProvider:
        with self._lock:
            if self._provider is None:
                modules = _load_opentelemetry()
                config = self.get_setup_config()
                exporter = self.get_exporter()
                if config.processor == "batch":
                    processor = modules["BatchSpanProcessor"](
                        exporter,
                        max_queue_size=config.max_queue_size,
                        max_export_batch_size=min(MAX_EXPORT_BATCH_SIZE, config.max_queue_size),
                    )
                else:
                    processor = modules["SimpleSpanProcessor"](exporter)
                resource = modules["Resource"].create(config.resource_attributes())
                provider = modules["TracerProvider"](resource=resource)
                provider.add_span_processor(processor)
                self._provider = provider
                _LOGGER.debug(
                    "Tracer provider configured",
                    extra={"service_name": config.service_name, "endpoint": config.endpoint_traces},
                )
            return self._provider

    def get_tracer(self) -> Tracer:
        with self._lock:
            if self._tracer is None:
                config = self.get_setup_config()
                self._tracer = self.get_tracer_provider().get_tracer(
                    config.service_name, config.service_version
                )
            return self._tracer

    def force_flush(self) -> None:
        if self._provider is not None:
            self._provider.force_flush()

    def shutdown(self) -> None:
        with self._lock:
            if self._provider is not None:
                self._provider.shutdown()
            self._provider = None
            self._tracer = None


_default_factory: Optional[TracerFactory] = None
_default_lock = threading.Lock()


def get_factory() -> TracerFactory:
    global _default_factory
    with _default_lock:
        if _default_factory is None:
            _default_factory = TracerFactory()
        return _default_factory


def set_factory(factory: Optional[TracerFactory]) -> None:
    """Replace (or with ``None`` reset) the process-wide factory."""

    global _default_factory
    with _default_lock:
        _default_factory = factory


def get_tracer() -> Tracer:
    return get_factory().get_tracer()


def get_setup_config() -> TelemetryConfig:
    return get_factory().get_setup_config()


__all__ = [
    "TracerFactory",
    "get_factory",
    "get_setup_config",
    "get_tracer",
    "set_factory",
]
