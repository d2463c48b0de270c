"""Exception hierarchy for otel-hooks."""

from __future__ import annotations

KNOWN_INSTRUMENTATIONS = ("cache", "client", "exception", "log", "query")


class OtelHooksError(RuntimeError):
    """Base class for errors raised by otel-hooks."""


class ConfigurationError(OtelHooksError):
    """Raised at boot when the telemetry setup cannot be built."""

    @classmethod
    def missing_sdk(cls, module: str) -> "ConfigurationError":
        return cls(
            f"OpenTelemetry SDK module '{module}' is required but not installed. "
            "Install it with `pip install opentelemetry-sdk opentelemetry-exporter-otlp-proto-http`."
        )


class UnsupportedInstrumentation(OtelHooksError, ValueError):
    """Raised when forcing an instrumentation whose name is unknown."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Unsupported instrumentation type: {name}. "
            f"Please use one of: {', '.join(KNOWN_INSTRUMENTATIONS)}."
        )


class InstrumentationBootError(OtelHooksError):
    """Raised when an instrumentation fails to subscribe to its events."""


__all__ = [
    "KNOWN_INSTRUMENTATIONS",
    "ConfigurationError",
    "InstrumentationBootError",
    "OtelHooksError",
    "UnsupportedInstrumentation",
]
