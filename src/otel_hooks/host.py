"""Host-side request, response and user views consumed by instrumentation.

Hosts translate their framework objects into these small dataclasses. The
request being served is bound to the current context by the request
middleware so that span enrichment deep inside a handler can find it.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Mapping, Optional
from urllib.parse import urlparse


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


@dataclass
class Route:
    """Resolved route. ``controller`` may use the ``Class@action`` form."""

    uri: str
    name: Optional[str] = None
    controller: Optional[str] = None
    parameters: Mapping[str, Any] = field(default_factory=dict)

    @property
    def controller_class(self) -> Optional[str]:
        if not self.controller:
            return None
        return self.controller.split("@", 1)[0]

    @property
    def action(self) -> Optional[str]:
        if self.controller and "@" in self.controller:
            return self.controller.split("@", 1)[1] or None
        return None


@dataclass
class AuthenticatedUser:
    id: Any
    email: Optional[str] = None
    name: Optional[str] = None
    roles: List[str] = field(default_factory=list)


@dataclass
class HttpRequest:
    """An incoming request as seen by the request middleware."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    client_ip: Optional[str] = None
    route: Optional[Route] = None
    user: Optional[AuthenticatedUser] = None
    session_id: Optional[str] = None
    input: Mapping[str, Any] = field(default_factory=dict)

    @property
    def scheme(self) -> str:
        return urlparse(self.url).scheme or "http"

    @property
    def host(self) -> Optional[str]:
        return urlparse(self.url).hostname

    @property
    def path(self) -> str:
        return urlparse(self.url).path.lstrip("/") or "/"

    @property
    def target(self) -> str:
        parsed = urlparse(self.url)
        return parsed.path + (f"?{parsed.query}" if parsed.query else "") or "/"

    @property
    def user_agent(self) -> Optional[str]:
        return _header(self.headers, "User-Agent")

    def header(self, name: str) -> Optional[str]:
        return _header(self.headers, name)


@dataclass
class HttpResponse:
    status_code: int = 200
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[str] = None

    def header(self, name: str) -> Optional[str]:
        return _header(self.headers, name)


@dataclass
class ClientRequest:
    """An outbound HTTP call. ``headers`` is mutable so tracing headers can be injected."""

    method: str
    url: str
    headers: dict = field(default_factory=dict)
    body: Optional[str] = None

    @property
    def scheme(self) -> str:
        return urlparse(self.url).scheme or "http"

    @property
    def host(self) -> str:
        return urlparse(self.url).hostname or ""

    @property
    def port(self) -> Optional[int]:
        parsed = urlparse(self.url)
        if parsed.port:
            return parsed.port
        return {"http": 80, "https": 443}.get(parsed.scheme)

    @property
    def path(self) -> str:
        return urlparse(self.url).path or "/"

    def header(self, name: str) -> Optional[str]:
        return _header(self.headers, name)


@dataclass
class ClientResponse:
    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[str] = None


_current_request: ContextVar[Optional[HttpRequest]] = ContextVar("otel_hooks_request", default=None)


def current_request() -> Optional[HttpRequest]:
    """Return the request bound to the current context, if any."""

    return _current_request.get()


@contextmanager
def bind_request(request: Optional[HttpRequest]) -> Iterator[Optional[HttpRequest]]:
    """Bind ``request`` for the duration of the block."""

    token = _current_request.set(request)
    try:
        yield request
    finally:
        _current_request.reset(token)


__all__ = [
    "AuthenticatedUser",
    "ClientRequest",
    "ClientResponse",
    "HttpRequest",
    "HttpResponse",
    "Route",
    "bind_request",
    "current_request",
]
