"""Registry of instrumentors by name.

The :class:`InstrumentationRegistry` maps the instrumentation names accepted
by the configuration and by :meth:`OtelHooks.instrument` to their classes and
keeps the instances that have been booted, so booting the same name twice is
a no-op.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, MutableMapping, Optional, Type

from ..errors import UnsupportedInstrumentation
from .base import Instrumentation
from .cache import CacheInstrumentation
from .client import ClientInstrumentation
from .exception import ExceptionInstrumentation
from .log import LogInstrumentation
from .query import QueryInstrumentation

DEFAULT_INSTRUMENTATIONS: Dict[str, Type[Instrumentation]] = {
    CacheInstrumentation.name: CacheInstrumentation,
    ClientInstrumentation.name: ClientInstrumentation,
    ExceptionInstrumentation.name: ExceptionInstrumentation,
    LogInstrumentation.name: LogInstrumentation,
    QueryInstrumentation.name: QueryInstrumentation,
}


class InstrumentationRegistry:
    """Hold instrumentor classes and the instances booted from them.

    Examples
    --------
    >>> registry = InstrumentationRegistry()
    >>> sorted(registry.names)
    ['cache', 'client', 'exception', 'log', 'query']
    >>> registry.resolve("cache").__name__
    'CacheInstrumentation'
    """

    def __init__(self, classes: Optional[Dict[str, Type[Instrumentation]]] = None) -> None:
        self._classes: Dict[str, Type[Instrumentation]] = dict(classes or DEFAULT_INSTRUMENTATIONS)
        self._booted: Dict[str, Instrumentation] = {}

    @property
    def names(self) -> List[str]:
        return list(self._classes)

    @property
    def booted(self) -> MutableMapping[str, Instrumentation]:
        """Return a mutable view of the booted instances."""

        return self._booted

    def resolve(self, name: str) -> Type[Instrumentation]:
        """Return the class registered for ``name``.

        Raises
        ------
        UnsupportedInstrumentation
            If ``name`` is unknown.
        """

        try:
            return self._classes[name]
        except KeyError as exc:
            raise UnsupportedInstrumentation(name) from exc

    def is_booted(self, name: str) -> bool:
        return name in self._booted

    def add(self, name: str, instance: Instrumentation) -> Instrumentation:
        """Store a booted instance. An existing entry for ``name`` wins."""

        return self._booted.setdefault(name, instance)

    def get(self, name: str) -> Instrumentation:
        return self._booted[name]

    def unboot_all(self, names: Optional[Iterable[str]] = None) -> None:
        for name in list(names if names is not None else self._booted):
            instance = self._booted.pop(name, None)
            if instance is not None:
                instance.unboot()


__all__ = ["DEFAULT_INSTRUMENTATIONS", "InstrumentationRegistry"]
