"""Unit tests for name-case helpers."""

import pytest

from sqlweave.utils.text import camelize, snake_case, unquote


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("full_name", "fullName"),
        ("id", "id"),
        ("_private_value", "privateValue"),
        ("created_at_utc", "createdAtUtc"),
        ("", ""),
    ],
)
def test_camelize(value: str, expected: str) -> None:
    assert camelize(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("fullName", "full_name"),
        ("userID", "user_id"),
        ("HTTPServer", "http_server"),
        ("already_snake", "already_snake"),
        ("with-dash name", "with_dash_name"),
        ("", ""),
    ],
)
def test_snake_case(value: str, expected: str) -> None:
    assert snake_case(value) == expected


def test_unquote() -> None:
    assert unquote(' "total", ') == "total"
    assert unquote("name") == "name"
