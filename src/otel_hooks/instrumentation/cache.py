"""Cache hit/miss/write/forget spans."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from ..events import CacheHit, CacheMissed, KeyForgotten, KeyWritten
from .base import Instrumentation, Subscription, guarded


class CacheInstrumentation(Instrumentation):
    name = "cache"

    def subscriptions(self) -> Iterable[Subscription]:
        return (
            (CacheHit, self.handle_hit),
            (CacheMissed, self.handle_miss),
            (KeyWritten, self.handle_write),
            (KeyForgotten, self.handle_forget),
        )

    def _attributes(self, key: str, store: Optional[str], **extra: Any) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {"cache.key": key, "cache.driver": store or "default"}
        attributes.update({name: value for name, value in extra.items() if value is not None})
        return attributes

    @guarded
    def handle_hit(self, event: CacheHit) -> None:
        self.record_span("cache.hit", self._attributes(event.key, event.store))

    @guarded
    def handle_miss(self, event: CacheMissed) -> None:
        self.record_span("cache.miss", self._attributes(event.key, event.store))

    @guarded
    def handle_write(self, event: KeyWritten) -> None:
        attributes = self._attributes(event.key, event.store)
        if event.ttl is not None:
            attributes["cache.ttl"] = event.ttl
        self.record_span("cache.write", attributes)

    @guarded
    def handle_forget(self, event: KeyForgotten) -> None:
        self.record_span("cache.forget", self._attributes(event.key, event.store))


__all__ = ["CacheInstrumentation"]
