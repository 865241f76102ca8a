"""Tests for reference resolution and canonical keys."""

import os

import pytest

import scriptload


@pytest.mark.parametrize("base,reference,expected", [
    ("/app/", "util.py", "/app/util.py"),
    ("/app/", "./lib/util.py", "/app/lib/util.py"),
    ("/app/sub/", "../shared/helpers.py", "/app/shared/helpers.py"),
    ("/app/sub/", "/opt/other.py", "/opt/other.py"),
    ("/app/", "a/../b/./c.py", "/app/b/c.py"),
    ("https://example.com/js/", "app.py", "https://example.com/js/app.py"),
    ("https://example.com/js/sub/", "../lib/x.py", "https://example.com/js/lib/x.py"),
    ("https://example.com/js/", "/root.py", "https://example.com/root.py"),
    ("/app/", "https://cdn.example.com/a/./b.py", "https://cdn.example.com/a/b.py"),
])
def test_resolve_reference(base, reference, expected):
    assert scriptload.resolve_reference(base, reference) == expected


def test_resolve_is_canonical():
    """Different spellings of the same file resolve to the same key."""
    keys = {
        scriptload.resolve_reference("/app/a/", "../shared.py"),
        scriptload.resolve_reference("/app/b/", "./../shared.py"),
        scriptload.resolve_reference("/app/", "shared.py"),
        scriptload.resolve_reference("/elsewhere/", "/app/shared.py"),
    }
    assert keys == {"/app/shared.py"}


def test_resolve_empty_reference():
    with pytest.raises(ValueError):
        scriptload.resolve_reference("/app/", "")


def test_relative_entry_becomes_absolute():
    key = scriptload.canonical_key("scripts/main.py")
    assert os.path.isabs(key)
    assert key == os.path.join(os.getcwd(), "scripts", "main.py")


@pytest.mark.parametrize("key,expected", [
    ("/app/main.py", "/app/"),
    ("/main.py", "/"),
    ("https://example.com/js/app.py", "https://example.com/js/"),
    ("https://example.com/app.py?v=1", "https://example.com/"),
])
def test_directory_of(key, expected):
    assert scriptload.directory_of(key) == expected


def test_is_url():
    assert scriptload.is_url("https://example.com/a.py")
    assert scriptload.is_url("file:///tmp/a.py")
    assert not scriptload.is_url("/tmp/a.py")
    assert not scriptload.is_url("lib/a.py")


def test_cache_token():
    """Tokens are appended as a query item and stripped back off."""
    plain = scriptload.add_cache_token("/app/a.py", 123)
    assert plain == "/app/a.py?_sl_t123"
    assert scriptload.strip_cache_token(plain) == "/app/a.py"

    queried = scriptload.add_cache_token("https://example.com/a.py?v=2", 99)
    assert queried == "https://example.com/a.py?v=2&_sl_t99"
    assert scriptload.strip_cache_token(queried) == "https://example.com/a.py?v=2"

    assert scriptload.strip_cache_token("/app/a.py?v=2") == "/app/a.py?v=2"
    assert scriptload.strip_cache_token("/app/a.py") == "/app/a.py"


def test_relative_path():
    assert scriptload.relative_path("/app/", "/app/lib/x.py") == os.path.join("lib", "x.py")
    assert scriptload.relative_path("https://a.com/js/", "https://a.com/js/x.py") == "x.py"
    assert scriptload.relative_path("https://a.com/js/", "https://b.com/x.py") == "https://b.com/x.py"
