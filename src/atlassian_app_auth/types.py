"""Shared datatypes for the Atlassian Connect app-auth SDK."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple, Union

from atlassian_app_auth.errors import InvalidInput

QueryPairs = Tuple[Tuple[str, str], ...]

QueryInput = Union[
    Mapping[str, Union[str, Sequence[str]]],
    Sequence[Tuple[str, str]],
    List[List[str]],
    None,
]

HeaderInput = Union[Dict[str, str], List[Tuple[str, str]], List[List[str]]]


def normalize_query(query: QueryInput) -> QueryPairs:
    if query is None:
        return ()

    pairs: list[tuple[str, str]] = []
    if isinstance(query, Mapping):
        for key, value in query.items():
            if isinstance(value, (list, tuple)):
                pairs.extend((key, item) for item in value)
            else:
                pairs.append((key, value))
        return tuple(pairs)

    for entry in query:
        if len(entry) != 2:
            raise InvalidInput("Query entries must be [key, value]")
        pairs.append((entry[0], entry[1]))
    return tuple(pairs)


@dataclass(frozen=True)
class HttpRequestDescriptor:
    """The parts of an HTTP request that a query string hash commits to."""

    method: str
    path: str
    query: QueryPairs = ()

    @classmethod
    def of(cls, method: str, path: str, query: QueryInput = None) -> HttpRequestDescriptor:
        return cls(method=method, path=path, query=normalize_query(query))


@dataclass(frozen=True)
class Credentials:
    issuer: str
    shared_secret: str | bytes = field(repr=False)


@dataclass(frozen=True)
class VerifiedClaims:
    issuer: str
    issued_at: int
    expires_at: int
    qsh: str
    subject: str | None
    context: Any
    claims: dict[str, Any]


@dataclass(frozen=True)
class AuthHeader:
    name: str
    value: str


@dataclass(frozen=True)
class SignedRequest:
    url: str
    method: str
    headers: dict[str, str]
    body: bytes | str | None
