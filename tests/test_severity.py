"""Tests for the severity table."""

from __future__ import annotations

import pytest

from otel_hooks.severity import DEFAULT_SEVERITY, is_error_level, severity_number, severity_text


@pytest.mark.parametrize(
    ("level", "number"),
    [
        ("trace", 1),
        ("debug", 5),
        ("info", 9),
        ("notice", 10),
        ("warning", 13),
        ("warn", 13),
        ("error", 17),
        ("critical", 18),
        ("alert", 21),
        ("fatal", 21),
        ("emergency", 24),
        ("ERROR", 17),
    ],
)
def test_known_levels(level: str, number: int) -> None:
    assert severity_number(level) == number


@pytest.mark.parametrize("level", [None, "", "verbose", "  "])
def test_unknown_levels_default_to_info(level) -> None:
    assert severity_number(level) == DEFAULT_SEVERITY == 9
    assert severity_text(level) == "INFO"


def test_error_levels() -> None:
    assert is_error_level("error")
    assert is_error_level("emergency")
    assert not is_error_level("warning")
    assert severity_text("Critical") == "CRITICAL"
