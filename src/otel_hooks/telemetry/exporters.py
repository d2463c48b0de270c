"""Span exporter that ships finished spans through a :class:`CollectorTransport`."""

from __future__ import annotations

import logging
from typing import Sequence

from opentelemetry.exporter.otlp.proto.common.trace_encoder import encode_spans
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from ..config import PROTOCOL_JSON, PROTOCOL_PROTOBUF
from . import otlp
from .transport import CONTENT_TYPE_JSON, CONTENT_TYPE_PROTOBUF, CollectorTransport

_LOGGER = logging.getLogger(__name__)

CONTENT_TYPES = {
    PROTOCOL_PROTOBUF: CONTENT_TYPE_PROTOBUF,
    PROTOCOL_JSON: CONTENT_TYPE_JSON,
}


class OTLPHttpSpanExporter(SpanExporter):
    """Encode spans as OTLP protobuf or JSON and POST them to the collector.

    Retries and timeouts are owned by the transport. A failed export is
    reported as :attr:`SpanExportResult.FAILURE`; nothing is raised into the
    span processor.
    """

    def __init__(self, transport: CollectorTransport, protocol: str = PROTOCOL_PROTOBUF) -> None:
        if protocol not in CONTENT_TYPES:
            raise ValueError(f"Unsupported OTLP protocol: {protocol!r}")
        self._transport = transport
        self._protocol = protocol
        self._shutdown = False

    @property
    def protocol(self) -> str:
        return self._protocol

    def encode(self, spans: Sequence[ReadableSpan]) -> bytes:
        if self._protocol == PROTOCOL_JSON:
            return otlp.dumps(otlp.build_resource_spans(spans))
        return encode_spans(spans).SerializePartialToString()

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        if self._shutdown:
            _LOGGER.debug("Exporter already shut down, dropping %d span(s)", len(spans))
            return SpanExportResult.FAILURE
        if not spans:
            return SpanExportResult.SUCCESS
        try:
            payload = self.encode(spans)
        except Exception:  # pragma: no cover - encoder bugs must not reach the host
            _LOGGER.debug("Failed to encode spans", exc_info=True)
            return SpanExportResult.FAILURE
        result = self._transport.send(payload)
        return SpanExportResult.SUCCESS if result.ok else SpanExportResult.FAILURE

    def shutdown(self) -> None:
        self._shutdown = True

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


__all__ = ["CONTENT_TYPES", "OTLPHttpSpanExporter"]
