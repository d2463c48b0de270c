"""Tests for attribute sanitisation and host helpers."""

from __future__ import annotations

import json
import socket

import pytest

from otel_hooks.attributes import (
    REDACTED,
    find_caller,
    host_identifier,
    request_payload,
    sanitize_headers,
    sanitize_parameters,
    status_severity,
    status_text,
    to_attribute_value,
)
from otel_hooks.host import HttpRequest


def test_status_text_and_severity() -> None:
    assert status_text(200) == "OK"
    assert status_text(418) == "I'm a teapot"
    assert status_text(599) == "Unknown Status"
    assert status_severity(503) == "error"
    assert status_severity(404) == "warning"
    assert status_severity(302) == "ok"


def test_sanitize_headers_drops_credentials() -> None:
    headers = {"Authorization": "Bearer x", "Cookie": "a=b", "X-CSRF-TOKEN": "t", "Accept": "text/html"}

    assert sanitize_headers(headers) == {"accept": "text/html"}


def test_sanitize_parameters_redacts_recursively() -> None:
    params = {
        "user": {"name": "ada", "new_password": "x", "api_key": "k"},
        "Token": "abc",
        "count": 2,
        "file": object(),
    }

    assert sanitize_parameters(params) == {
        "user": {"name": "ada", "new_password": REDACTED, "api_key": REDACTED},
        "Token": REDACTED,
        "count": 2,
        "file": "[object]",
    }


def test_request_payload_excludes_secrets_and_truncates() -> None:
    request = HttpRequest(
        method="POST",
        url="https://shop.test/",
        input={"api_token": "t", "comment": "y" * 5000, **{f"f{i}": "z" * 150 for i in range(20)}},
    )

    payload = request_payload(request)

    assert len(payload) == 2000
    assert payload.endswith("...")
    assert "api_token" not in payload
    assert request_payload(HttpRequest(method="GET", url="https://shop.test/")) is None


def test_request_payload_field_limit() -> None:
    request = HttpRequest(method="POST", url="https://shop.test/", input={"comment": "y" * 500})

    assert json.loads(request_payload(request))["comment"] == "y" * 197 + "..."


def test_host_identifier_fallbacks(monkeypatch: pytest.MonkeyPatch) -> None:
    request = HttpRequest(method="GET", url="https://shop.test/")
    monkeypatch.setenv("APP_URL", "https://app.example.com:8443")

    assert host_identifier(request) == "shop.test"
    assert host_identifier() == "app.example.com"

    monkeypatch.delenv("APP_URL")
    assert host_identifier() == socket.gethostname()


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("text", "text"),
        (3, 3),
        (None, "null"),
        ({"a": 1}, '{"a": 1}'),
        ([1, 2], "[1, 2]"),
        (ValueError("bad"), "ValueError: bad"),
        (object(), "[object]"),
    ],
)
def test_to_attribute_value(value, expected) -> None:
    assert to_attribute_value(value) == expected


def test_find_caller_skips_package_frames() -> None:
    caller = find_caller()

    assert caller.file.endswith("test_attributes.py")
    assert caller.function == "test_find_caller_skips_package_frames"
