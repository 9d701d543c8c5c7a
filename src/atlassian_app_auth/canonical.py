"""Canonical request form and query string hash (``qsh``) for Connect JWTs.

The canonical request is ``METHOD&PATH&QUERY``:

1. The method is upper-cased.
2. The path is percent-decoded and re-encoded with a fixed path table; ``&``
   is always escaped, an empty path becomes ``/`` and a trailing ``/`` is
   dropped unless it is the whole path.
3. The ``jwt`` parameter is dropped from the query.
4. Keys and values are percent-encoded per RFC 3986: only ``A-Z a-z 0-9 - . _ ~``
   stay literal, and escapes use uppercase hex over UTF-8 bytes.
5. Values of a repeated key are sorted and joined with ``,``.
6. Parameters are sorted by encoded key and joined as ``key=value`` with ``&``.

Input that cannot be canonicalized unambiguously (escaped ``/`` in the path,
already-encoded query values, broken escapes) is rejected with
:class:`UnsupportedQueryEncoding` instead of being guessed at.
"""

from __future__ import annotations

import hashlib
import re
from urllib.parse import parse_qsl, quote_from_bytes, unquote_to_bytes, urlsplit

from atlassian_app_auth.errors import InvalidInput, UnsupportedQueryEncoding
from atlassian_app_auth.types import HttpRequestDescriptor, QueryInput, normalize_query

RESERVED_QUERY_PARAMS = frozenset({"jwt"})

# Characters left literal in a canonical path besides the RFC 3986 unreserved set.
PATH_SAFE_CHARS = "/:@!$'()*+,;="

_METHOD_PATTERN = re.compile(r"^[A-Za-z]+$")
_ESCAPE_PATTERN = re.compile(r"%[0-9A-Fa-f]{2}")
_BROKEN_ESCAPE_PATTERN = re.compile(r"%(?![0-9A-Fa-f]{2})")
_AMBIGUOUS_PATH_ESCAPE_PATTERN = re.compile(r"%(2[Ff]|25)")


def _utf8(value: str, what: str) -> bytes:
    try:
        return value.encode("utf-8")
    except UnicodeEncodeError as error:
        raise UnsupportedQueryEncoding(f"{what} is not encodable as UTF-8: {value!r}") from error


def percent_encode(value: str) -> str:
    """Encode ``value`` with every character outside ``A-Za-z0-9-._~`` escaped."""

    return quote_from_bytes(_utf8(value, "Value"), safe="")


def canonical_method(method: str) -> str:
    if not isinstance(method, str):
        raise InvalidInput("HTTP method must be a string")
    stripped = method.strip()
    # upper() folds some non-ASCII letters ("ı") into ASCII, so check first.
    if not stripped.isascii() or not _METHOD_PATTERN.match(stripped):
        raise InvalidInput(f"Invalid HTTP method: {method!r}")
    return stripped.upper()


def canonical_path(path: str) -> str:
    if not isinstance(path, str):
        raise InvalidInput("Request path must be a string")

    if _BROKEN_ESCAPE_PATTERN.search(path):
        raise UnsupportedQueryEncoding(f"Malformed percent escape in path: {path!r}")
    if _AMBIGUOUS_PATH_ESCAPE_PATTERN.search(path):
        raise UnsupportedQueryEncoding(f"Path contains an escaped '/' or '%': {path!r}")

    try:
        decoded = unquote_to_bytes(_utf8(path, "Path")).decode("utf-8")
    except UnicodeDecodeError as error:
        raise UnsupportedQueryEncoding(f"Path escapes are not valid UTF-8: {path!r}") from error

    encoded = quote_from_bytes(decoded.encode("utf-8"), safe=PATH_SAFE_CHARS)
    if not encoded.startswith("/"):
        encoded = "/" + encoded
    if len(encoded) > 1 and encoded.endswith("/"):
        encoded = encoded[:-1]
    return encoded


def _encode_query_part(value: object, what: str) -> str:
    if not isinstance(value, str):
        raise InvalidInput(f"Query {what} must be a string, got {type(value).__name__}")
    if _ESCAPE_PATTERN.search(value):
        raise UnsupportedQueryEncoding(
            f"Query {what} looks percent-encoded already: {value!r}. Pass decoded values.",
        )
    return percent_encode(value)


def canonical_query(query: QueryInput) -> str:
    grouped: dict[str, list[str]] = {}
    for key, value in normalize_query(query):
        if key in RESERVED_QUERY_PARAMS:
            continue
        if key == "":
            raise UnsupportedQueryEncoding("Query parameter with an empty name")
        encoded_key = _encode_query_part(key, "key")
        grouped.setdefault(encoded_key, []).append(_encode_query_part(value, "value"))

    # str ordering matches byte ordering once everything is ASCII.
    return "&".join(
        f"{key}={','.join(sorted(values))}" for key, values in sorted(grouped.items())
    )


def canonicalize(method: str, path: str, query: QueryInput = None) -> str:
    return "&".join((canonical_method(method), canonical_path(path), canonical_query(query)))


def canonical_request(request: HttpRequestDescriptor) -> str:
    return canonicalize(request.method, request.path, request.query)


def hash_canonical_request(canonical: str) -> str:
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def query_string_hash(request: HttpRequestDescriptor) -> str:
    return hash_canonical_request(canonical_request(request))


def request_from_url(method: str, url: str, base_url: str | None = None) -> HttpRequestDescriptor:
    """Split ``url`` into a request descriptor.

    When ``base_url`` has a context path (``https://example.atlassian.net/wiki``)
    that prefix is removed, since products hash the path relative to their base URL.
    """

    parts = urlsplit(url)
    path = parts.path

    if base_url:
        base_path = urlsplit(base_url).path.rstrip("/")
        if base_path and (path == base_path or path.startswith(base_path + "/")):
            path = path[len(base_path):]

    try:
        query = parse_qsl(parts.query, keep_blank_values=True, errors="strict")
    except UnicodeDecodeError as error:
        raise UnsupportedQueryEncoding(f"Query escapes are not valid UTF-8: {parts.query!r}") from error

    return HttpRequestDescriptor(method=method, path=path, query=tuple(query))
