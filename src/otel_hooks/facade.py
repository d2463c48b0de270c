"""Entry point used by hosts to turn instrumentation on."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from .config import TelemetryConfig
from .correlation import CorrelationStore
from .events import EventDispatcher
from .instrumentation.base import Instrumentation
from .instrumentation.registry import InstrumentationRegistry
from .middleware import RequestInstrumentation
from .spans import SpanBuilder
from .telemetry.logs import LogEmitter
from .telemetry.tracer import TracerFactory

_LOGGER = logging.getLogger(__name__)

BootCallback = Callable[["OtelHooks"], None]


class OtelHooks:
    """Wire instrumentors, the tracer and the log emitter for one host.

    Parameters
    ----------
    config:
        Configuration; when omitted it is read from the environment on first
        use through the tracer factory.
    dispatcher:
        Host event bus adapter instrumentors subscribe to.
    factory, emitter, registry:
        Replace the tracer factory, log emitter or instrumentor registry,
        mostly useful in tests.

    Examples
    --------
    >>> hooks = OtelHooks(TelemetryConfig(enabled=False))
    >>> hooks.auto_instrument()
    []
    """

    def __init__(
        self,
        config: Optional[TelemetryConfig] = None,
        dispatcher: Optional[EventDispatcher] = None,
        *,
        factory: Optional[TracerFactory] = None,
        emitter: Optional[LogEmitter] = None,
        registry: Optional[InstrumentationRegistry] = None,
    ) -> None:
        self._factory = factory or TracerFactory(config)
        self._dispatcher = dispatcher or EventDispatcher()
        self._emitter = emitter
        self._registry = registry or InstrumentationRegistry()
        self._builder = SpanBuilder(self._factory, CorrelationStore())
        self._callbacks: List[BootCallback] = []

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def factory(self) -> TracerFactory:
        return self._factory

    @property
    def builder(self) -> SpanBuilder:
        return self._builder

    @property
    def registry(self) -> InstrumentationRegistry:
        return self._registry

    @property
    def emitter(self) -> LogEmitter:
        if self._emitter is None:
            self._emitter = LogEmitter(self.get_config())
        return self._emitter

    def get_config(self) -> TelemetryConfig:
        return self._factory.get_setup_config()

    def register_instrumentation(self, callback: BootCallback) -> None:
        """Queue ``callback`` to run, with this facade, at the end of :meth:`auto_instrument`."""

        self._callbacks.append(callback)

    def instrument(self, name: str) -> Instrumentation:
        """Boot the instrumentor called ``name`` regardless of configuration toggles.

        Booting an already booted instrumentor returns the existing instance.

        Raises
        ------
        UnsupportedInstrumentation
            If ``name`` is not a known instrumentor.
        InstrumentationBootError
            If subscribing to the dispatcher fails.
        """

        cls = self._registry.resolve(name)
        if self._registry.is_booted(name):
            return self._registry.get(name)
        instance = cls(self.get_config(), self._dispatcher, self._builder, self.emitter)
        instance.boot()
        _LOGGER.debug("Booted %s instrumentation", name)
        return self._registry.add(name, instance)

    def auto_instrument(self) -> List[str]:
        """Boot every instrumentor enabled in the configuration.

        Returns the names that were booted. Does nothing when telemetry is
        disabled. The tracer is built here so a missing SDK surfaces as a
        :class:`ConfigurationError` at boot rather than on the first event.
        """

        config = self.get_config()
        if not config.enabled:
            _LOGGER.debug("Telemetry disabled, skipping instrumentation")
            return []
        self._factory.get_tracer()

        booted = [name for name in self._registry.names if config.is_enabled(name)]
        for name in booted:
            self.instrument(name)
        for callback in self._callbacks:
            callback(self)
        return booted

    def middleware(self) -> RequestInstrumentation:
        return RequestInstrumentation(self._builder)

    def shutdown(self) -> None:
        self._registry.unboot_all()
        self._factory.shutdown()


__all__ = ["OtelHooks"]
