"""Configuration primitives for otel-hooks.

:class:`TelemetryConfig` is built once per process, either from the host's
nested configuration mapping, from environment variables or from a YAML
file, and is read-only afterwards.

Examples
--------
>>> config = TelemetryConfig.from_mapping({"otel": {"service_name": "shop"}})
>>> config.service_name, config.endpoint_traces
('shop', 'http://localhost:4318/v1/traces')
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

import yaml

from .errors import KNOWN_INSTRUMENTATIONS, ConfigurationError

DEFAULT_TRACES_ENDPOINT = "http://localhost:4318/v1/traces"
DEFAULT_LOGS_ENDPOINT = "http://localhost:4318/v1/logs"
DEFAULT_SERVICE_NAME = "laravel-app"
DEFAULT_ENVIRONMENT = "local"

PROTOCOL_PROTOBUF = "http/protobuf"
PROTOCOL_JSON = "http/json"
_PROTOCOLS = (PROTOCOL_PROTOBUF, PROTOCOL_JSON)
_PROCESSORS = ("simple", "batch")

_truthy = {"1", "true", "yes", "on"}
_falsy = {"0", "false", "no", "off"}


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _truthy:
        return True
    if normalized in _falsy:
        return False
    return default


def _parse_headers(value: Any) -> Dict[str, str]:
    """Accept ``k=v,k2=v2`` strings (OTLP env format) or mappings."""

    if not value:
        return {}
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items()}
    parsed: Dict[str, str] = {}
    for pair in str(value).split(","):
        if not pair:
            continue
        key, _, raw = pair.partition("=")
        if key.strip():
            parsed[key.strip()] = raw.strip()
    return parsed


def _default_instrumentations() -> Dict[str, bool]:
    return {name: True for name in KNOWN_INSTRUMENTATIONS}


@dataclass(frozen=True)
class TelemetryConfig:
    """Immutable runtime configuration for tracing and log shipping.

    Parameters
    ----------
    enabled:
        Master switch. When ``False`` :meth:`OtelHooks.auto_instrument`
        boots nothing.
    endpoint_traces / endpoint_logs:
        OTLP/HTTP endpoints of the collector.
    service_name / service_version / environment:
        Mapped to the ``service.name``, ``service.version`` and
        ``deployment.environment`` resource attributes.
    instrumentations:
        Per-instrumentation toggles keyed by ``cache``, ``client``,
        ``exception``, ``log`` and ``query``.
    protocol:
        ``http/protobuf`` (default) or ``http/json`` for span export. Logs
        are always shipped as JSON.
    retry_delay / max_retries / timeout:
        Transport policy. Defaults to 100 ms between attempts, 3 retries and
        a 5 second timeout.
    processor:
        ``simple`` exports synchronously on span end, ``batch`` hands spans
        to the SDK background worker bounded by ``max_queue_size``.
    debug:
        Report instrumentation-internal failures to the diagnostic logger.
    """

    enabled: bool = True
    endpoint_traces: str = DEFAULT_TRACES_ENDPOINT
    endpoint_logs: str = DEFAULT_LOGS_ENDPOINT
    service_name: str = DEFAULT_SERVICE_NAME
    service_version: Optional[str] = None
    environment: str = DEFAULT_ENVIRONMENT
    instrumentations: Mapping[str, bool] = field(default_factory=_default_instrumentations)
    protocol: str = PROTOCOL_PROTOBUF
    headers: Mapping[str, str] = field(default_factory=dict)
    compression: Optional[str] = None
    timeout: float = 5.0
    retry_delay: float = 0.1
    max_retries: int = 3
    processor: str = "simple"
    max_queue_size: int = 2048
    verify_tls: bool = True
    debug: bool = False

    def __post_init__(self) -> None:
        for endpoint in (self.endpoint_traces, self.endpoint_logs):
            parsed = urlparse(endpoint or "")
            if parsed.scheme not in {"http", "https"} or not parsed.netloc:
                raise ConfigurationError(f"Invalid collector endpoint: {endpoint!r}")
        if self.protocol not in _PROTOCOLS:
            raise ConfigurationError(
                f"Unsupported OTLP protocol {self.protocol!r}; expected one of {', '.join(_PROTOCOLS)}"
            )
        if self.processor not in _PROCESSORS:
            raise ConfigurationError(
                f"Unsupported span processor {self.processor!r}; expected one of {', '.join(_PROCESSORS)}"
            )
        if int(self.max_queue_size) <= 0:
            raise ConfigurationError(f"max_queue_size must be positive, got {self.max_queue_size!r}")
        toggles = _default_instrumentations()
        toggles.update({str(k): bool(v) for k, v in self.instrumentations.items()})
        object.__setattr__(self, "instrumentations", toggles)
        object.__setattr__(self, "headers", dict(self.headers))
        object.__setattr__(self, "max_retries", max(0, int(self.max_retries)))

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------
    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]] = None) -> "TelemetryConfig":
        """Build a config from the host's nested configuration mapping.

        Missing or ``None`` values fall back to the documented defaults.
        """

        mapping = mapping or {}
        otel: Mapping[str, Any] = mapping.get("otel") or {}
        toggles: Mapping[str, Any] = mapping.get("instrumentations") or {}

        def pick(key: str, default: Any) -> Any:
            value = otel.get(key)
            return default if value is None or value == "" else value

        return cls(
            enabled=_parse_bool(mapping.get("enabled"), True),
            endpoint_traces=pick("endpoint", DEFAULT_TRACES_ENDPOINT),
            endpoint_logs=pick("endpoint_logs", DEFAULT_LOGS_ENDPOINT),
            service_name=pick("service_name", DEFAULT_SERVICE_NAME),
            service_version=pick("version", None),
            environment=pick("environment", DEFAULT_ENVIRONMENT),
            instrumentations={name: _parse_bool(value, True) for name, value in toggles.items()},
            protocol=pick("protocol", PROTOCOL_PROTOBUF),
            headers=_parse_headers(otel.get("headers")),
            compression=pick("compression", None),
            timeout=float(pick("timeout", 5.0)),
            retry_delay=float(pick("retry_delay", 0.1)),
            max_retries=int(pick("max_retries", 3)),
            processor=pick("processor", "simple"),
            max_queue_size=int(pick("max_queue_size", 2048)),
            verify_tls=_parse_bool(otel.get("verify_tls"), True),
            debug=_parse_bool(mapping.get("debug"), False),
        )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "TelemetryConfig":
        """Build a config from environment variables."""

        environ = env if env is not None else os.environ
        timeout = environ.get("OTEL_EXPORTER_OTLP_TIMEOUT")
        return cls.from_mapping(
            {
                "enabled": environ.get("OTEL_HOOKS_ENABLED"),
                "debug": environ.get("OTEL_HOOKS_DEBUG"),
                "otel": {
                    "endpoint": environ.get("OTEL_EXPORTER_OTLP_ENDPOINT"),
                    "endpoint_logs": environ.get("OTEL_EXPORTER_LOGS_ENDPOINT"),
                    "service_name": environ.get("OTEL_SERVICE_NAME"),
                    "version": environ.get("APP_VERSION"),
                    "environment": environ.get("APP_ENV"),
                    "protocol": environ.get("OTEL_EXPORTER_OTLP_PROTOCOL"),
                    "headers": environ.get("OTEL_EXPORTER_OTLP_HEADERS"),
                    "compression": environ.get("OTEL_EXPORTER_OTLP_COMPRESSION"),
                    # OTEL_EXPORTER_OTLP_TIMEOUT is expressed in milliseconds
                    "timeout": float(timeout) / 1000 if timeout else None,
                    "verify_tls": environ.get("OTEL_HOOKS_VERIFY_TLS"),
                },
                "instrumentations": {
                    name: environ.get(f"OTEL_HOOKS_INSTRUMENT_{name.upper()}")
                    for name in KNOWN_INSTRUMENTATIONS
                },
            }
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "TelemetryConfig":
        """Load a YAML file shaped like :meth:`from_mapping` input."""

        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file '{config_path}' does not exist")
        try:
            data = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Configuration file '{config_path}' is not valid YAML") from exc
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Configuration file '{config_path}' must contain a mapping")
        return cls.from_mapping(data)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def is_enabled(self, instrumentation: str) -> bool:
        return bool(self.instrumentations.get(instrumentation, False))

    def resource_attributes(self) -> Dict[str, Any]:
        """Service identity attributes; ``None`` values are omitted."""

        attributes: Dict[str, Any] = {
            "service.name": self.service_name,
            "service.version": self.service_version,
            "deployment.environment": self.environment,
        }
        return {key: value for key, value in attributes.items() if value is not None}

    def into_dict(self) -> Dict[str, Any]:
        """Serialise the configuration back into the host mapping shape."""

        return {
            "enabled": self.enabled,
            "debug": self.debug,
            "otel": {
                "endpoint": self.endpoint_traces,
                "endpoint_logs": self.endpoint_logs,
                "service_name": self.service_name,
                "version": self.service_version,
                "environment": self.environment,
                "protocol": self.protocol,
                "headers": dict(self.headers),
                "compression": self.compression,
                "timeout": self.timeout,
                "retry_delay": self.retry_delay,
                "max_retries": self.max_retries,
                "processor": self.processor,
                "max_queue_size": self.max_queue_size,
                "verify_tls": self.verify_tls,
            },
            "instrumentations": dict(self.instrumentations),
        }


__all__ = [
    "DEFAULT_ENVIRONMENT",
    "DEFAULT_LOGS_ENDPOINT",
    "DEFAULT_SERVICE_NAME",
    "DEFAULT_TRACES_ENDPOINT",
    "PROTOCOL_JSON",
    "PROTOCOL_PROTOBUF",
    "TelemetryConfig",
]
