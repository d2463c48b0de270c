"""Event instrumentors subscribed to the host's event dispatcher."""

from .base import Instrumentation, guarded
from .cache import CacheInstrumentation
from .client import REQUEST_ID_HEADER, ClientInstrumentation
from .exception import ExceptionInstrumentation
from .log import LogInstrumentation
from .query import QueryInstrumentation
from .registry import DEFAULT_INSTRUMENTATIONS, InstrumentationRegistry

__all__ = [
    "CacheInstrumentation",
    "ClientInstrumentation",
    "DEFAULT_INSTRUMENTATIONS",
    "ExceptionInstrumentation",
    "Instrumentation",
    "InstrumentationRegistry",
    "LogInstrumentation",
    "QueryInstrumentation",
    "REQUEST_ID_HEADER",
    "guarded",
]
