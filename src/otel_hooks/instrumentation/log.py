"""Log message spans and OTLP log records."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

from opentelemetry.trace import Status, StatusCode

from ..attributes import CallerInfo, find_caller, to_attribute_value
from ..events import MessageLogged
from ..exceptions import exception_id_for
from ..severity import is_error_level, normalize_level
from ..telemetry.logs import LogRecord
from .base import Instrumentation, Subscription, guarded, is_own_logger


def context_attributes(context: Mapping[str, Any], prefix: str = "log.context.") -> Dict[str, Any]:
    return {f"{prefix}{key}": to_attribute_value(value) for key, value in context.items()}


def caller_attributes(caller: CallerInfo) -> Dict[str, Any]:
    attributes: Dict[str, Any] = {}
    if caller.file:
        attributes["code.filepath"] = caller.file
    if caller.line:
        attributes["code.lineno"] = caller.line
    if caller.function:
        attributes["code.function"] = caller.function
    if caller.cls:
        attributes["code.namespace"] = caller.cls
    return attributes


class LogInstrumentation(Instrumentation):
    name = "log"

    def subscriptions(self) -> Iterable[Subscription]:
        return ((MessageLogged, self.handle_message_logged),)

    def _caller(self, event: MessageLogged) -> CallerInfo:
        if event.pathname:
            return CallerInfo(event.pathname, event.lineno, event.func_name, None)
        return find_caller()

    @guarded
    def handle_message_logged(self, event: MessageLogged) -> None:
        if is_own_logger(event.logger_name):
            return

        level = normalize_level(event.level) or "info"
        # read before the log span exists so records point at the enclosing span
        trace_id, span_id = self.current_ids()
        exception = event.exception
        if exception is not None:
            exception_id = exception_id_for(exception)
            self.correlation.set_exception_id(exception_id)
        else:
            exception_id = self.correlation.get_exception_id()

        attributes: Dict[str, Any] = {"log.level": level, "log.message": event.message}
        if event.logger_name:
            attributes["log.logger"] = event.logger_name
        attributes.update(caller_attributes(self._caller(event)))
        attributes.update(context_attributes(event.context or {}))
        if trace_id:
            attributes["trace_id"] = trace_id
            attributes["span_id"] = span_id
        if exception_id:
            attributes["exception_id"] = exception_id

        span = self.builder.create_span(f"log.{level}", attributes, register=False)
        if is_error_level(level):
            span.set_status(Status(StatusCode.ERROR, "Error log"))
            span.set_attribute("error", True)
        span.end()

        if self.emitter is not None:
            record = LogRecord.from_level(
                level, event.message, attributes, trace_id=trace_id, span_id=span_id
            )
            self.emitter.send_log(record)


__all__ = ["LogInstrumentation", "caller_attributes", "context_attributes"]
