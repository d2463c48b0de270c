"""Bridge stdlib :mod:`logging` records into :class:`MessageLogged` events."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .events import EventDispatcher, MessageLogged
from .telemetry.logs import is_emitting

# Attributes the stdlib attaches to every record; anything else on a record
# came from ``extra=`` and is forwarded as log context.
_STANDARD_RECORD_FIELDS = {
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "message",
    "module",
    "msecs",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}

_OWN_NAMESPACE = "otel_hooks"


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    context: Dict[str, Any] = {
        key: value for key, value in vars(record).items() if key not in _STANDARD_RECORD_FIELDS
    }
    if record.exc_info and record.exc_info[1] is not None:
        context.setdefault("exception", record.exc_info[1])
    return context


class MessageLoggedHandler(logging.Handler):
    """Dispatch every handled record as a :class:`MessageLogged` event.

    Records from the ``otel_hooks`` logger namespace and records produced
    while a log is being shipped are ignored, so shipping never feeds back
    into itself.

    Examples
    --------
    >>> dispatcher = EventDispatcher()
    >>> seen = []
    >>> dispatcher.listen(MessageLogged, seen.append)
    >>> logger = logging.getLogger("doctest.bridge")
    >>> logger.addHandler(MessageLoggedHandler(dispatcher))
    >>> logger.warning("disk at %d%%", 91)
    >>> seen[0].level, seen[0].message
    ('warning', 'disk at 91%')
    """

    def __init__(self, dispatcher: EventDispatcher, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._dispatcher = dispatcher

    def _is_own(self, record: logging.LogRecord) -> bool:
        return record.name == _OWN_NAMESPACE or record.name.startswith(f"{_OWN_NAMESPACE}.")

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        if self._is_own(record) or is_emitting():
            return
        try:
            event = MessageLogged(
                level=record.levelname.lower() if record.levelname != "NOTSET" else "info",
                message=record.getMessage(),
                context=record_context(record),
                logger_name=record.name,
                pathname=record.pathname,
                lineno=record.lineno,
                func_name=record.funcName,
            )
            self._dispatcher.dispatch(event)
        except Exception:
            self.handleError(record)


def attach(dispatcher: EventDispatcher, logger: Optional[logging.Logger] = None) -> MessageLoggedHandler:
    """Attach a bridge handler to ``logger`` (the root logger by default)."""

    handler = MessageLoggedHandler(dispatcher)
    (logger or logging.getLogger()).addHandler(handler)
    return handler


__all__ = ["MessageLoggedHandler", "attach", "record_context"]
