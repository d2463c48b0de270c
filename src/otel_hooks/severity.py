"""Canonical log level to OTLP severity mapping.

One table, taken from the OpenTelemetry logs data model, is used for every
emission path (log records, exception records and log spans).
"""

from __future__ import annotations

from typing import Dict, Optional

SEVERITY_NUMBERS: Dict[str, int] = {
    "trace": 1,
    "debug": 5,
    "info": 9,
    "notice": 10,
    "warning": 13,
    "warn": 13,
    "error": 17,
    "critical": 18,
    "alert": 21,
    "fatal": 21,
    "emergency": 24,
}

DEFAULT_LEVEL = "info"
DEFAULT_SEVERITY = SEVERITY_NUMBERS[DEFAULT_LEVEL]


def normalize_level(level: Optional[str]) -> str:
    return (level or "").strip().lower()


def severity_number(level: Optional[str]) -> int:
    """Return the OTLP severity number for ``level``; unknown levels map to INFO."""

    return SEVERITY_NUMBERS.get(normalize_level(level), DEFAULT_SEVERITY)


def severity_text(level: Optional[str]) -> str:
    normalized = normalize_level(level)
    if normalized not in SEVERITY_NUMBERS:
        normalized = DEFAULT_LEVEL
    return normalized.upper()


def is_error_level(level: Optional[str]) -> bool:
    return severity_number(level) >= SEVERITY_NUMBERS["error"]


__all__ = [
    "DEFAULT_SEVERITY",
    "SEVERITY_NUMBERS",
    "is_error_level",
    "normalize_level",
    "severity_number",
    "severity_text",
]
