"""Structured exception details shared by the log and span paths."""

from __future__ import annotations

import hashlib
import linecache
import time
import traceback
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

CONTEXT_RADIUS = 5
DEFAULT_HTTP_STATUS = 500

_ID_ATTRIBUTE = "_otel_hooks_exception_id"
_RECORDED_ATTRIBUTE = "_otel_hooks_recorded"


def _qualified_name(exc: BaseException) -> str:
    cls = type(exc)
    if cls.__module__ in ("builtins", "__main__"):
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def exception_origin(exc: BaseException) -> Tuple[Optional[str], Optional[int]]:
    """Return the file and line where ``exc`` was raised (innermost frame)."""

    tb = exc.__traceback__
    if tb is None:
        return None, None
    while tb.tb_next is not None:
        tb = tb.tb_next
    return tb.tb_frame.f_code.co_filename, tb.tb_lineno


def http_status_for(exc: BaseException) -> Optional[int]:
    """Status carried by an HTTP-aware exception, or ``None``."""

    status = getattr(exc, "status_code", None)
    if status is None:
        getter = getattr(exc, "get_status_code", None)
        if callable(getter):
            status = getter()
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def exception_id_for(exc: BaseException) -> str:
    """Return the id of this exception occurrence, generating it on first use.

    The id is a sha256 over class, message, origin and the time it was first
    requested, truncated to 32 hex characters. It is memoized on the
    exception object so every later caller sees the same value.
    """

    existing = getattr(exc, _ID_ATTRIBUTE, None)
    if existing:
        return existing
    file, line = exception_origin(exc)
    seed = "|".join(
        (_qualified_name(exc), str(exc), file or "", str(line or 0), repr(time.time()), str(id(exc)))
    )
    exception_id = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:32]
    try:
        setattr(exc, _ID_ATTRIBUTE, exception_id)
    except (AttributeError, TypeError):
        # exception types with __slots__ cannot carry the id
        pass
    return exception_id


def is_recorded(exc: BaseException) -> bool:
    return bool(getattr(exc, _RECORDED_ATTRIBUTE, False))


def mark_recorded(exc: BaseException) -> None:
    try:
        setattr(exc, _RECORDED_ATTRIBUTE, True)
    except (AttributeError, TypeError):
        pass


def code_context(file: Optional[str], line: Optional[int], radius: int = CONTEXT_RADIUS) -> Optional[str]:
    """Source lines around ``line`` rendered as ``"<lineno>: <text>"``."""

    if not file or not line:
        return None
    start = max(1, line - radius)
    rendered = []
    for number in range(start, line + radius + 1):
        text = linecache.getline(file, number)
        if not text:
            if number > line:
                break
            continue
        rendered.append(f"{number}: {text.rstrip()}")
    return "\n".join(rendered) or None


@dataclass(frozen=True)
class ExceptionRecord:
    exception_id: str
    type: str
    short_type: str
    message: str
    stacktrace: str
    file: Optional[str]
    line: Optional[int]
    http_status_code: int
    is_http_error: bool
    code_context: Optional[str]

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ExceptionRecord":
        file, line = exception_origin(exc)
        status = http_status_for(exc)
        return cls(
            exception_id=exception_id_for(exc),
            type=_qualified_name(exc),
            short_type=type(exc).__name__,
            message=str(exc),
            stacktrace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            file=file,
            line=line,
            http_status_code=status if status is not None else DEFAULT_HTTP_STATUS,
            is_http_error=status is not None,
            code_context=code_context(file, line),
        )

    @property
    def span_name(self) -> str:
        if self.is_http_error:
            return f"http.error.{self.http_status_code}"
        return f"exception.{self.short_type}"

    def to_attributes(self) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {
            "exception.id": self.exception_id,
            "exception.type": self.type,
            "exception.message": self.message,
            "exception.stacktrace": self.stacktrace,
            "http.status_code": self.http_status_code,
        }
        if self.file:
            attributes["exception.file"] = self.file
        if self.line:
            attributes["exception.line"] = self.line
        if self.code_context:
            attributes["exception.code_context"] = self.code_context
        return attributes


__all__ = [
    "CONTEXT_RADIUS",
    "ExceptionRecord",
    "code_context",
    "exception_id_for",
    "exception_origin",
    "http_status_for",
    "is_recorded",
    "mark_recorded",
]
