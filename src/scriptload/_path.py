"""Resolve script references into canonical keys.

Handles the reference formats a unit may pass to ``sl.imports``:
- Relative path: "util.py", "./lib/util.py", "../shared/helpers.py"
- Absolute path: "/full/path/to/script.py"
- URL: "https://example.com/scripts/app.py" (and paths relative to a URL)

Keys are canonical: absolute, with "." and ".." segments removed. A key is
the identity of a unit; the location handed to a reader may additionally
carry a cache-busting token, which never appears in a key.
"""

__all__ = [
    "resolve_reference",
    "canonical_key",
    "directory_of",
    "relative_path",
    "add_cache_token",
    "strip_cache_token",
    "is_url",
]

import os
import posixpath
import urllib.parse

CACHE_TOKEN_PREFIX = "_sl_t"


def is_url(reference):
    """(bool) Whether reference carries a scheme like ``https://``."""
    return "://" in reference and not reference.startswith("/")


def canonical_key(location):
    """Normalize an absolute location into a key.

    Args:
        location: (str) File path or URL

    Returns:
        (str) Absolute path with "." and ".." removed, or a URL with its
        path normalized the same way
    """
    if is_url(location):
        parts = urllib.parse.urlsplit(location)
        path = _normalize_url_path(parts.path)
        return urllib.parse.urlunsplit(
            (parts.scheme, parts.netloc, path, parts.query, parts.fragment))
    return os.path.abspath(os.path.normpath(location))


def resolve_reference(base_directory, reference):
    """Resolve a raw reference against the directory of the importing unit.

    Pure function, other than falling back to the working directory for a
    relative base.

    Args:
        base_directory: (str) Directory of the importing unit
        reference: (str) Raw reference as given to ``sl.imports``

    Returns:
        (str) Canonical key

    Raises:
        ValueError: Empty reference
    """
    if not reference:
        raise ValueError("empty script reference")
    if is_url(reference):
        return canonical_key(reference)
    if is_url(base_directory):
        return canonical_key(urllib.parse.urljoin(base_directory, reference))
    if os.path.isabs(reference):
        return canonical_key(reference)
    return canonical_key(os.path.join(base_directory, reference))


def directory_of(key):
    """Directory containing key, with a trailing separator.

    Args:
        key: (str) Canonical key

    Returns:
        (str) Parent location ending in "/" (or ``os.sep`` for files)
    """
    if is_url(key):
        parts = urllib.parse.urlsplit(key)
        path = parts.path[:parts.path.rfind("/") + 1] or "/"
        return urllib.parse.urlunsplit((parts.scheme, parts.netloc, path, "", ""))
    directory = os.path.dirname(key)
    if not directory.endswith(os.sep):
        directory += os.sep
    return directory


def relative_path(origin_directory, target):
    """Path of target relative to origin_directory, for display.

    Targets on a different host or scheme are returned unchanged.
    """
    if is_url(origin_directory) or is_url(target):
        origin = urllib.parse.urlsplit(origin_directory)
        dest = urllib.parse.urlsplit(target)
        if (origin.scheme, origin.netloc) != (dest.scheme, dest.netloc):
            return target
        return posixpath.relpath(dest.path, origin.path or "/")
    try:
        return os.path.relpath(target, origin_directory)
    except ValueError:
        # Different drives on Windows
        return target


def add_cache_token(location, token):
    """Decorate a location with a uniqueness token.

    Args:
        location: (str) Location to decorate
        token: (int | str) Unique value, typically a timestamp

    Returns:
        (str) location with ``?_sl_t<token>`` or ``&_sl_t<token>`` appended
    """
    separator = "&" if "?" in location else "?"
    return f"{location}{separator}{CACHE_TOKEN_PREFIX}{token}"


def strip_cache_token(location):
    """Remove a token added by add_cache_token, leaving other queries alone."""
    base, sep, query = location.partition("?")
    if not sep:
        return location
    kept = [item for item in query.split("&")
            if not item.startswith(CACHE_TOKEN_PREFIX)]
    if not kept:
        return base
    return f"{base}?{'&'.join(kept)}"


def _normalize_url_path(path):
    if not path:
        return "/"
    normalized = posixpath.normpath(path)
    # posixpath keeps a leading "//" which is meaningless in a URL path
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    if path.endswith("/") and not normalized.endswith("/"):
        normalized += "/"
    return normalized
