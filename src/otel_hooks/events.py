"""Typed host events and the dispatcher instrumentors subscribe to.

Hosts adapt their own event bus by dispatching these dataclasses through an
:class:`EventDispatcher`; each instrumentor registers typed listeners for the
event types it cares about.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type, TypeVar

from .host import ClientRequest, ClientResponse, HttpRequest

_LOGGER = logging.getLogger(__name__)

E = TypeVar("E")
Listener = Callable[[Any], None]


@dataclass(frozen=True)
class CacheHit:
    key: str
    value: Any = None
    store: Optional[str] = None


@dataclass(frozen=True)
class CacheMissed:
    key: str
    store: Optional[str] = None


@dataclass(frozen=True)
class KeyWritten:
    key: str
    value: Any = None
    ttl: Optional[float] = None
    store: Optional[str] = None


@dataclass(frozen=True)
class KeyForgotten:
    key: str
    store: Optional[str] = None


@dataclass(frozen=True)
class QueryExecuted:
    """A database statement finished; ``time`` is in milliseconds."""

    sql: str
    bindings: Sequence[Any] = ()
    time: Optional[float] = None
    connection_name: Optional[str] = None
    driver: Optional[str] = None


@dataclass(frozen=True)
class RequestSending:
    request: ClientRequest


@dataclass(frozen=True)
class ResponseReceived:
    request: ClientRequest
    response: ClientResponse


@dataclass(frozen=True)
class MessageLogged:
    """A log line was written.

    ``pathname``/``lineno``/``func_name`` carry the caller origin when the
    source already knows it (e.g. a stdlib :class:`logging.LogRecord`);
    otherwise the log instrumentor inspects the stack.
    """

    level: str
    message: str
    context: Mapping[str, Any] = field(default_factory=dict)
    logger_name: Optional[str] = None
    pathname: Optional[str] = None
    lineno: Optional[int] = None
    func_name: Optional[str] = None

    @property
    def exception(self) -> Optional[BaseException]:
        candidate = self.context.get("exception") if self.context else None
        return candidate if isinstance(candidate, BaseException) else None


@dataclass(frozen=True)
class ExceptionOccurred:
    exception: BaseException
    request: Optional[HttpRequest] = None


class EventDispatcher:
    """Minimal synchronous event bus keyed by event class.

    Listeners run on the dispatching thread in registration order. Exceptions
    raised by a listener propagate to the dispatcher's caller; instrumentor
    listeners guard themselves, so only host listeners can raise here.

    Examples
    --------
    >>> seen = []
    >>> bus = EventDispatcher()
    >>> bus.listen(CacheMissed, seen.append)
    >>> bus.dispatch(CacheMissed(key="user:42"))
    >>> seen[0].key
    'user:42'
    """

    def __init__(self) -> None:
        self._listeners: Dict[type, List[Listener]] = {}
        self._lock = threading.Lock()

    def listen(self, event_type: Type[E], listener: Callable[[E], None]) -> None:
        with self._lock:
            self._listeners.setdefault(event_type, []).append(listener)

    def forget(self, event_type: type, listener: Optional[Listener] = None) -> None:
        """Remove one listener, or every listener of ``event_type``."""

        with self._lock:
            if listener is None:
                self._listeners.pop(event_type, None)
                return
            listeners = self._listeners.get(event_type, [])
            if listener in listeners:
                listeners.remove(listener)

    def has_listeners(self, event_type: type) -> bool:
        return bool(self._listeners.get(event_type))

    def listeners_for(self, event_type: type) -> List[Listener]:
        with self._lock:
            return list(self._listeners.get(event_type, ()))

    def dispatch(self, event: Any) -> None:
        listeners = self.listeners_for(type(event))
        if not listeners:
            _LOGGER.debug("No listeners for %s", type(event).__name__)
        for listener in listeners:
            listener(event)


__all__ = [
    "CacheHit",
    "CacheMissed",
    "EventDispatcher",
    "ExceptionOccurred",
    "KeyForgotten",
    "KeyWritten",
    "MessageLogged",
    "QueryExecuted",
    "RequestSending",
    "ResponseReceived",
]
