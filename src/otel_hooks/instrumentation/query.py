"""Database query spans."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable

from ..events import QueryExecuted
from .base import Instrumentation, Subscription, guarded


class QueryInstrumentation(Instrumentation):
    name = "query"

    def subscriptions(self) -> Iterable[Subscription]:
        return ((QueryExecuted, self.handle_query),)

    @guarded
    def handle_query(self, event: QueryExecuted) -> None:
        attributes: Dict[str, Any] = {
            "db.system": event.driver or "unknown",
            "db.statement": event.sql,
            "db.bindings": json.dumps(list(event.bindings), default=str),
        }
        if event.time is not None:
            attributes["db.time"] = float(event.time)
        if event.connection_name:
            attributes["db.connection_name"] = event.connection_name
        self.record_span("db.query", attributes, kind="client")


__all__ = ["QueryInstrumentation"]
