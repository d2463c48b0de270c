"""Request-scoped correlation of trace, span and exception identifiers.

The store lets independently triggered handlers (the request middleware, the
log instrumentor, the exception instrumentor) tag their output with the
identifiers of the span that was current when they ran. State lives in a
:class:`~contextvars.ContextVar` so concurrent requests on separate threads or
asyncio tasks never see each other's identifiers.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Iterator, Optional, Tuple

TRACE_ID_LENGTH = 32
SPAN_ID_LENGTH = 16

_NON_HEX = re.compile(r"[^0-9a-f]")


def _normalize(value: Optional[str], length: int) -> str:
    text = _NON_HEX.sub("", (value or "").lower())
    if len(text) > length:
        return text[:length]
    return text.rjust(length, "0")


def normalize_trace_id(trace_id: Optional[str]) -> str:
    """Return ``trace_id`` as exactly 32 hex characters.

    Non-hex characters are dropped, then the rest is left-padded with zeros
    or truncated.
    """

    return _normalize(trace_id, TRACE_ID_LENGTH)


def normalize_span_id(span_id: Optional[str]) -> str:
    """Return ``span_id`` as exactly 16 hex characters."""

    return _normalize(span_id, SPAN_ID_LENGTH)


@dataclass(frozen=True)
class CorrelationContext:
    """Snapshot of the identifiers active in the current logical operation."""

    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    exception_id: Optional[str] = None


_EMPTY = CorrelationContext()
_current: ContextVar[CorrelationContext] = ContextVar("otel_hooks_correlation", default=_EMPTY)


class CorrelationStore:
    """Accessor for the context-local :class:`CorrelationContext`.

    Instances carry no state of their own; every instance reads and writes
    the same context variable, so instrumentors can each hold one.

    Examples
    --------
    >>> store = CorrelationStore()
    >>> store.set_current_trace("abc", "1")
    >>> store.get_current_trace()
    ('00000000000000000000000000000abc', '0000000000000001')
    >>> store.clear()
    """

    def set_current_trace(self, trace_id: str, span_id: str) -> None:
        _current.set(
            replace(
                _current.get(),
                trace_id=normalize_trace_id(trace_id),
                span_id=normalize_span_id(span_id),
            )
        )

    def get_current_trace(self) -> Tuple[Optional[str], Optional[str]]:
        state = _current.get()
        return state.trace_id, state.span_id

    def set_exception_id(self, exception_id: Optional[str]) -> None:
        _current.set(replace(_current.get(), exception_id=exception_id))

    def get_exception_id(self) -> Optional[str]:
        return _current.get().exception_id

    def snapshot(self) -> CorrelationContext:
        return _current.get()

    def clear(self) -> None:
        _current.set(_EMPTY)

    @contextmanager
    def scope(self) -> Iterator["CorrelationStore"]:
        """Run a block with a fresh context, restoring the previous one after."""

        token = _current.set(_EMPTY)
        try:
            yield self
        finally:
            _current.reset(token)


__all__ = [
    "SPAN_ID_LENGTH",
    "TRACE_ID_LENGTH",
    "CorrelationContext",
    "CorrelationStore",
    "normalize_span_id",
    "normalize_trace_id",
]
