"""HTTP transport that POSTs OTLP payloads to the collector."""

from __future__ import annotations

import gzip
import logging
import ssl
import time
import zlib
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional
from urllib import error, request

from opentelemetry.exporter.otlp.proto.http import Compression

_LOGGER = logging.getLogger(__name__)

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_PROTOBUF = "application/x-protobuf"

_RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


def coerce_compression(compression: Optional[object]) -> Optional[Compression]:
    """Accept a :class:`Compression` member, its name/value, or ``None``."""

    if compression is None or isinstance(compression, Compression):
        return compression  # type: ignore[return-value]
    if isinstance(compression, str):
        normalized = compression.strip().lower()
        if normalized in {"", "none"}:
            return None
        for option in Compression:
            if option.name.lower() == normalized or option.value == normalized:
                return option
        raise ValueError(f"Unsupported compression setting: {compression!r}")
    raise TypeError("compression must be a Compression enum value, its name, or None")


@dataclass(frozen=True)
class TransportResult:
    """Outcome of one :meth:`CollectorTransport.send` call."""

    ok: bool
    status_code: Optional[int] = None
    attempts: int = 0
    error: Optional[str] = None


@dataclass
class TransportPolicy:
    """Retry and timeout settings. The defaults match the collector contract."""

    timeout: float = 5.0
    retry_delay: float = 0.1
    max_retries: int = 3
    verify_tls: bool = True
    headers: Mapping[str, str] = field(default_factory=dict)


class CollectorTransport:
    """POST payloads to one OTLP/HTTP endpoint with bounded retries.

    :meth:`send` never raises for network problems: every failure is folded
    into a :class:`TransportResult` so that callers on the application's hot
    path can drop telemetry silently.
    """

    def __init__(
        self,
        endpoint: str,
        content_type: str = CONTENT_TYPE_JSON,
        *,
        policy: Optional[TransportPolicy] = None,
        compression: Optional[object] = None,
        opener: Optional[request.OpenerDirector] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.endpoint = endpoint
        self.content_type = content_type
        self.policy = policy or TransportPolicy()
        self.compression = coerce_compression(compression)
        self._opener = opener or self._build_opener(self.policy.verify_tls)
        self._sleep = sleep

    @staticmethod
    def _build_opener(verify_tls: bool) -> request.OpenerDirector:
        if verify_tls:
            return request.build_opener()
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return request.build_opener(request.HTTPSHandler(context=context))

    def _build_request(self, payload: bytes) -> request.Request:
        headers = dict(self.policy.headers)
        headers["Content-Type"] = self.content_type
        data = payload
        if self.compression is Compression.Gzip:
            data = gzip.compress(payload)
            headers["Content-Encoding"] = "gzip"
        elif self.compression is Compression.Deflate:
            data = zlib.compress(payload)
            headers["Content-Encoding"] = "deflate"
        return request.Request(self.endpoint, data=data, headers=headers, method="POST")

    def send(self, payload: bytes) -> TransportResult:
        req = self._build_request(payload)
        attempts = 0
        last_error: Optional[str] = None
        status_code: Optional[int] = None
        while attempts <= self.policy.max_retries:
            if attempts:
                self._sleep(self.policy.retry_delay)
            attempts += 1
            try:
                with self._opener.open(req, timeout=self.policy.timeout) as resp:
                    status_code = resp.getcode()
                    resp.read()
            except error.HTTPError as exc:
                exc.close()
                status_code = exc.code
                last_error = f"HTTP {exc.code}"
                if exc.code not in _RETRYABLE_STATUS:
                    break
                continue
            except (error.URLError, OSError, ValueError) as exc:
                status_code = None
                last_error = str(getattr(exc, "reason", exc))
                continue

            if status_code is not None and 200 <= status_code < 300:
                return TransportResult(ok=True, status_code=status_code, attempts=attempts)
            last_error = f"HTTP {status_code}"
            if status_code not in _RETRYABLE_STATUS:
                break

        _LOGGER.debug(
            "Collector export failed",
            extra={"endpoint": self.endpoint, "attempts": attempts, "error": last_error},
        )
        return TransportResult(ok=False, status_code=status_code, attempts=attempts, error=last_error)


__all__ = [
    "CONTENT_TYPE_JSON",
    "CONTENT_TYPE_PROTOBUF",
    "CollectorTransport",
    "TransportPolicy",
    "TransportResult",
    "coerce_compression",
]
