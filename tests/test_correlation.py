"""Tests for the context-local correlation store."""

from __future__ import annotations

import asyncio

from otel_hooks.correlation import CorrelationStore, normalize_span_id, normalize_trace_id


def test_ids_are_padded_and_truncated_to_fixed_lengths() -> None:
    assert normalize_trace_id("ABC") == "0" * 29 + "abc"
    assert normalize_span_id("1") == "0" * 15 + "1"
    assert normalize_trace_id("f" * 40) == "f" * 32
    assert normalize_span_id("a" * 20) == "a" * 16
    assert len(normalize_trace_id(None)) == 32


def test_set_current_trace_normalizes_before_storing() -> None:
    store = CorrelationStore()
    store.set_current_trace(" 4BF92F3577B34DA6A3CE929D0E0E4736 ", "00F067AA0BA902B7")

    assert store.get_current_trace() == ("4bf92f3577b34da6a3ce929d0e0e4736", "00f067aa0ba902b7")


def test_exception_id_and_clear() -> None:
    store = CorrelationStore()
    store.set_current_trace("a", "b")
    store.set_exception_id("e" * 32)

    assert store.get_exception_id() == "e" * 32
    assert store.snapshot().trace_id is not None

    store.clear()
    assert store.get_current_trace() == (None, None)
    assert store.get_exception_id() is None


def test_instances_share_the_context_state() -> None:
    CorrelationStore().set_current_trace("1", "2")

    assert CorrelationStore().get_current_trace() == ("0" * 31 + "1", "0" * 15 + "2")


def test_scope_restores_previous_state() -> None:
    store = CorrelationStore()
    store.set_current_trace("1", "1")

    with store.scope():
        assert store.get_current_trace() == (None, None)
        store.set_current_trace("2", "2")

    assert store.get_current_trace() == ("0" * 31 + "1", "0" * 15 + "1")


def test_concurrent_tasks_do_not_see_each_other() -> None:
    store = CorrelationStore()

    async def handle(trace_id: str) -> tuple:
        store.set_current_trace(trace_id, trace_id)
        await asyncio.sleep(0)
        return store.get_current_trace()

    async def main() -> list:
        return await asyncio.gather(handle("aaa"), handle("bbb"))

    first, second = asyncio.run(main())

    assert first[0].endswith("aaa")
    assert second[0].endswith("bbb")
    assert store.get_current_trace() == (None, None)


def test_non_hex_characters_are_dropped() -> None:
    assert normalize_trace_id("req-4bf92f35-77b3") == "0" * 19 + "e4bf92f3577b3"
    assert normalize_span_id("span-01") == "0" * 13 + "a01"
