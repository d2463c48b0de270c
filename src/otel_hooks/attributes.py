"""Attribute helpers shared by the span builder and the instrumentors."""

from __future__ import annotations

import json
import os
import socket
import sys
from dataclasses import dataclass
from types import FrameType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
from urllib.parse import urlparse

from .host import HttpRequest

REDACTED = "[REDACTED]"

SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "x-csrf-token"})
SENSITIVE_PARAMETERS = frozenset({"password", "token", "secret", "key", "api_key", "auth"})
EXCLUDED_INPUT_FIELDS = frozenset({"password", "password_confirmation", "token", "api_token", "secret"})

FIELD_LIMIT = 200
PAYLOAD_LIMIT = 2000

_STATUS_TEXTS: Dict[int, str] = {
    100: "Continue",
    101: "Switching Protocols",
    102: "Processing",
    103: "Early Hints",
    200: "OK",
    201: "Created",
    202: "Accepted",
    203: "Non-Authoritative Information",
    204: "No Content",
    205: "Reset Content",
    206: "Partial Content",
    207: "Multi-Status",
    208: "Already Reported",
    226: "IM Used",
    300: "Multiple Choices",
    301: "Moved Permanently",
    302: "Found",
    303: "See Other",
    304: "Not Modified",
    305: "Use Proxy",
    307: "Temporary Redirect",
    308: "Permanent Redirect",
    400: "Bad Request",
    401: "Unauthorized",
    402: "Payment Required",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    406: "Not Acceptable",
    407: "Proxy Authentication Required",
    408: "Request Timeout",
    409: "Conflict",
    410: "Gone",
    411: "Length Required",
    412: "Precondition Failed",
    413: "Payload Too Large",
    414: "URI Too Long",
    415: "Unsupported Media Type",
    416: "Range Not Satisfiable",
    417: "Expectation Failed",
    418: "I'm a teapot",
    421: "Misdirected Request",
    422: "Unprocessable Entity",
    423: "Locked",
    424: "Failed Dependency",
    425: "Too Early",
    426: "Upgrade Required",
    428: "Precondition Required",
    429: "Too Many Requests",
    431: "Request Header Fields Too Large",
    451: "Unavailable For Legal Reasons",
    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
    505: "HTTP Version Not Supported",
    506: "Variant Also Negotiates",
    507: "Insufficient Storage",
    508: "Loop Detected",
    510: "Not Extended",
    511: "Network Authentication Required",
}


def status_text(code: int) -> str:
    return _STATUS_TEXTS.get(code, "Unknown Status")


def status_severity(code: int) -> str:
    """Classify an HTTP status as ``error``, ``warning`` or ``ok``."""

    if code >= 500:
        return "error"
    if code >= 400:
        return "warning"
    return "ok"


def host_identifier(request: Optional[HttpRequest] = None) -> str:
    """Prefer the request's domain, then ``APP_URL``'s host, then the hostname."""

    if request is not None and request.host:
        return request.host
    app_url = os.getenv("APP_URL")
    if app_url:
        host = urlparse(app_url).hostname
        if host:
            return host
    return socket.gethostname()


def sanitize_headers(headers: Mapping[str, Any]) -> Dict[str, str]:
    """Drop credential-bearing headers and lowercase the rest."""

    return {
        str(key).lower(): str(value)
        for key, value in headers.items()
        if str(key).lower() not in SENSITIVE_HEADERS
    }


def _is_sensitive(key: Any) -> bool:
    lowered = str(key).lower()
    return lowered in SENSITIVE_PARAMETERS or "password" in lowered


def sanitize_parameters(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Redact sensitive keys recursively; non-scalars become ``[TypeName]``."""

    result: Dict[str, Any] = {}
    for key, value in params.items():
        if _is_sensitive(key):
            result[key] = REDACTED
        elif isinstance(value, Mapping):
            result[key] = sanitize_parameters(value)
        elif value is None or isinstance(value, (str, int, float, bool)):
            result[key] = value
        else:
            result[key] = f"[{type(value).__name__}]"
    return result


def truncate_values(data: Mapping[str, Any], limit: int = FIELD_LIMIT) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            result[key] = truncate_values(value, limit)
        elif isinstance(value, str) and len(value) > limit:
            result[key] = value[: limit - 3] + "..."
        else:
            result[key] = value
    return result


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def request_payload(request: HttpRequest) -> Optional[str]:
    """Serialise request input for the ``http.request_data`` attribute."""

    data = {k: v for k, v in request.input.items() if k not in EXCLUDED_INPUT_FIELDS}
    if not data:
        return None
    encoded = json.dumps(truncate_values(data), default=str)
    return truncate(encoded, PAYLOAD_LIMIT)


def to_attribute_value(value: Any) -> Any:
    """Coerce ``value`` into a type OpenTelemetry accepts as an attribute.

    Scalars pass through, ``None`` becomes ``"null"``, mappings and sequences
    are JSON encoded, exceptions become ``Class: message`` and any other
    object is rendered as ``[ClassName]``.
    """

    if isinstance(value, (str, bool, int, float)):
        return value
    if value is None:
        return "null"
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    if isinstance(value, (Mapping, list, tuple, set)):
        try:
            return json.dumps(list(value) if isinstance(value, set) else value, default=str)
        except (TypeError, ValueError):
            return f"[{type(value).__name__}]"
    return f"[{type(value).__name__}]"


def clean_attributes(attributes: Mapping[str, Any]) -> Dict[str, Any]:
    return {str(key): to_attribute_value(value) for key, value in attributes.items()}


@dataclass(frozen=True)
class CallerInfo:
    file: Optional[str]
    line: Optional[int]
    function: Optional[str]
    cls: Optional[str]


_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
_VENDOR_MARKERS: Tuple[str, ...] = (
    f"{os.sep}site-packages{os.sep}",
    f"{os.sep}dist-packages{os.sep}",
    f"{os.sep}vendor{os.sep}",
    f"{os.sep}logging{os.sep}__init__.py",
)


def _is_framework_frame(filename: str, extra: Iterable[str]) -> bool:
    path = os.path.abspath(filename)
    if path.startswith(_PACKAGE_DIR):
        return True
    if any(marker in path for marker in _VENDOR_MARKERS):
        return True
    return any(path.startswith(prefix) for prefix in extra)


def find_caller(skip_prefixes: Iterable[str] = ()) -> CallerInfo:
    """Return the first stack frame outside this package and vendored code."""

    prefixes = tuple(skip_prefixes)
    frame: Optional[FrameType] = sys._getframe(1)
    while frame is not None:
        code = frame.f_code
        if not _is_framework_frame(code.co_filename, prefixes):
            owner = frame.f_locals.get("self")
            cls_name = type(owner).__name__ if owner is not None else None
            if cls_name is None and "cls" in frame.f_locals and isinstance(frame.f_locals["cls"], type):
                cls_name = frame.f_locals["cls"].__name__
            return CallerInfo(code.co_filename, frame.f_lineno, code.co_name, cls_name)
        frame = frame.f_back
    return CallerInfo(None, None, None, None)


__all__ = [
    "CallerInfo",
    "EXCLUDED_INPUT_FIELDS",
    "PAYLOAD_LIMIT",
    "REDACTED",
    "SENSITIVE_HEADERS",
    "clean_attributes",
    "find_caller",
    "host_identifier",
    "request_payload",
    "sanitize_headers",
    "sanitize_parameters",
    "status_severity",
    "status_text",
    "to_attribute_value",
    "truncate",
    "truncate_values",
]
