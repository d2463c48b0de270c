"""OTLP log record emission."""

from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..attributes import host_identifier
from ..config import TelemetryConfig
from ..severity import severity_number, severity_text
from . import otlp
from .transport import CONTENT_TYPE_JSON, CollectorTransport, TransportPolicy

_DIAGNOSTICS = logging.getLogger("otel_hooks.diagnostics")

SCOPE_NAME = "otel_hooks"

_emitting: ContextVar[bool] = ContextVar("otel_hooks_emitting", default=False)


def is_emitting() -> bool:
    """True while a log record is being shipped on this context."""

    return _emitting.get()


@dataclass
class LogRecord:
    """One log line ready to be shipped to the collector."""

    body: str
    severity_number: int
    severity_text: str
    timestamp_nanos: int = field(default_factory=time.time_ns)
    attributes: Dict[str, Any] = field(default_factory=dict)
    trace_id: Optional[str] = None
    span_id: Optional[str] = None

    @classmethod
    def from_level(
        cls,
        level: Optional[str],
        body: str,
        attributes: Optional[Mapping[str, Any]] = None,
        *,
        trace_id: Optional[str] = None,
        span_id: Optional[str] = None,
    ) -> "LogRecord":
        return cls(
            body=body,
            severity_number=severity_number(level),
            severity_text=severity_text(level),
            attributes=dict(attributes or {}),
            trace_id=trace_id,
            span_id=span_id,
        )


class LogEmitter:
    """Serialize :class:`LogRecord` objects into ``resourceLogs`` and POST them.

    :meth:`send_log` returns ``False`` instead of raising on any failure and
    refuses to run re-entrantly, so a log triggered while shipping a log is
    dropped rather than looping.
    """

    def __init__(
        self,
        config: TelemetryConfig,
        transport: Optional[CollectorTransport] = None,
        *,
        scope_version: Optional[str] = None,
    ) -> None:
        self._config = config
        self._transport = transport or CollectorTransport(
            config.endpoint_logs,
            CONTENT_TYPE_JSON,
            policy=TransportPolicy(
                timeout=config.timeout,
                retry_delay=config.retry_delay,
                max_retries=config.max_retries,
                verify_tls=config.verify_tls,
                headers=config.headers,
            ),
            compression=config.compression,
        )
        self._scope_version = scope_version

    @property
    def transport(self) -> CollectorTransport:
        return self._transport

    def resource_attributes(self) -> Dict[str, Any]:
        attributes = self._config.resource_attributes()
        attributes["host.name"] = host_identifier()
        return attributes

    def build_payload(self, record: LogRecord) -> Dict[str, Any]:
        return otlp.build_resource_logs(
            [record],
            self.resource_attributes(),
            SCOPE_NAME,
            self._scope_version,
        )

    def send_log(self, record: LogRecord) -> bool:
        if _emitting.get():
            return False
        token = _emitting.set(True)
        try:
            result = self._transport.send(otlp.dumps(self.build_payload(record)))
        except Exception as exc:
            if self._config.debug:
                _DIAGNOSTICS.warning("Failed to ship log record: %s", exc)
            return False
        finally:
            _emitting.reset(token)
        if not result.ok and self._config.debug:
            _DIAGNOSTICS.warning(
                "Collector rejected log record after %d attempt(s): %s", result.attempts, result.error
            )
        return result.ok


__all__ = ["LogEmitter", "LogRecord", "SCOPE_NAME", "is_emitting"]
