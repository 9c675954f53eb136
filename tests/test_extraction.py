"""Tests for JSON path extraction."""

import pytest

from apiwave.core.execution.extraction import extract_values, find_value, is_missing, parse_json

DOCUMENT = {
    "data": {
        "items": [{"id": 7, "tags": ["a", "b"]}, {"id": 8, "active": False}],
        "owner": None,
    },
    "token": "abc",
    "count": 2,
    "ratio": 0.5,
}


@pytest.mark.parametrize("path,expected", [
    ("token", "abc"),
    ("$.token", "abc"),
    ("data.items[0].id", 7),
    ("$.data.items[1].active", False),
    ("data.items[0].tags[1]", "b"),
])
def test_find_value(path, expected):
    """Test dotted paths with indices reach nested values."""
    assert find_value(DOCUMENT, path) == expected


@pytest.mark.parametrize("path", [
    "missing",
    "data.items[5].id",
    "token.length",
    "data.items.id",
    "data.items[x]",
])
def test_find_value_missing(path):
    """Test absent segments report missing rather than raising."""
    assert is_missing(find_value(DOCUMENT, path))


def test_root_path_returns_document():
    """Test $ alone addresses the whole document."""
    assert find_value(DOCUMENT, "$") is DOCUMENT


def test_extract_scalars_as_text():
    """Test scalars are rendered as text, JSON style for non-strings."""
    body = '{"token": "abc", "count": 2, "ratio": 0.5, "ok": true}'

    extracted = extract_values(
        {"t": "$.token", "c": "count", "r": "ratio", "ok": "ok"},
        body,
    )

    assert extracted == {"t": "abc", "c": "2", "r": "0.5", "ok": "true"}


def test_extract_skips_null_and_non_scalar():
    """Test null, objects, arrays and missing paths produce no entry."""
    body = '{"owner": null, "data": {"a": 1}, "items": [1, 2]}'

    extracted = extract_values(
        {"owner": "owner", "data": "data", "items": "items", "gone": "nope"},
        body,
    )

    assert extracted == {}


def test_extract_each_path_independent():
    """Test one failing path does not prevent the others."""
    extracted = extract_values({"bad": "x.y", "good": "id"}, '{"id": "u-1"}')

    assert extracted == {"good": "u-1"}


def test_extract_from_non_json_body():
    """Test a non-JSON body extracts nothing."""
    assert extract_values({"id": "id"}, "<html>oops</html>") == {}
    assert extract_values({"id": "id"}, None) == {}


def test_parse_json_invalid():
    """Test invalid JSON is reported as missing."""
    assert is_missing(parse_json("{not json"))
    assert parse_json("[1]") == [1]
