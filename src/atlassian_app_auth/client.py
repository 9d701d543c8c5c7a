"""Thin outbound client that signs product API calls with a Connect JWT."""

from __future__ import annotations

import json
import logging
import urllib.request
from datetime import timedelta
from typing import Any, Callable, Optional, Union

from atlassian_app_auth.canonical import request_from_url
from atlassian_app_auth.errors import InvalidInput
from atlassian_app_auth.retry import retry_request
from atlassian_app_auth.tokens import DEFAULT_VALID_FOR_SECONDS, create_auth_header
from atlassian_app_auth.types import Credentials, HeaderInput, SignedRequest

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, str, dict[str, str], Optional[Union[bytes, str]]], Any]


def _resolve_url(value: str, base: str) -> str:
    if value.startswith("http://") or value.startswith("https://"):
        return value
    return f"{base.rstrip('/')}/{value.lstrip('/')}"


def _normalize_headers(headers: HeaderInput | None) -> dict[str, str]:
    if headers is None:
        return {}
    entries = headers.items() if isinstance(headers, dict) else headers
    out: dict[str, str] = {}
    for entry in entries:
        if len(entry) != 2:
            raise InvalidInput("Header entries must be [name, value]")
        out[str(entry[0]).lower()] = str(entry[1])
    return out


class AppAuthClient:
    """Signs requests against one product installation (``base_url``)."""

    def __init__(
        self,
        credentials: Credentials,
        *,
        base_url: str,
        fetcher: Fetcher | None = None,
        valid_for: int | timedelta = DEFAULT_VALID_FOR_SECONDS,
        attempts: int = 3,
    ):
        if not base_url:
            raise InvalidInput("AppAuthClient requires base_url")
        self._credentials = credentials
        self._fetcher = fetcher
        self._valid_for = valid_for
        self._attempts = attempts

        self.base_url = base_url.rstrip("/")
        self.issuer = credentials.issuer

    def sign(
        self,
        *,
        url: str,
        method: str = "GET",
        headers: HeaderInput | None = None,
        body: bytes | str | None = None,
    ) -> SignedRequest:
        resolved_url = _resolve_url(url, self.base_url)
        normalized_method = method.upper()
        descriptor = request_from_url(normalized_method, resolved_url, base_url=self.base_url)
        header = create_auth_header(self._credentials, descriptor, valid_for=self._valid_for)

        normalized_headers = _normalize_headers(headers)
        normalized_headers[header.name.lower()] = header.value

        return SignedRequest(
            url=resolved_url,
            method=normalized_method,
            headers=normalized_headers,
            body=body,
        )

    def _send(self, signed: SignedRequest) -> Any:
        if self._fetcher is not None:
            return self._fetcher(signed.url, signed.method, signed.headers, signed.body)

        data = signed.body.encode("utf-8") if isinstance(signed.body, str) else signed.body
        request = urllib.request.Request(
            signed.url,
            method=signed.method,
            headers=signed.headers,
            data=data,
        )
        return urllib.request.urlopen(request)

    def fetch(
        self,
        *,
        url: str,
        method: str = "GET",
        headers: HeaderInput | None = None,
        body: bytes | str | None = None,
    ) -> Any:
        def attempt() -> Any:
            signed = self.sign(url=url, method=method, headers=headers, body=body)
            logger.debug("Sending %s %s as %s", signed.method, signed.url, self.issuer)
            return self._send(signed)

        return retry_request(attempt, method=method, attempts=self._attempts)

    def request_json(
        self,
        path: str,
        *,
        method: str = "GET",
        payload: Any = None,
    ) -> Any:
        headers = {"accept": "application/json"}
        body = None
        if payload is not None:
            headers["content-type"] = "application/json"
            body = json.dumps(payload)

        response = self.fetch(url=path, method=method, headers=headers, body=body)
        raw = response.read() if hasattr(response, "read") else response
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        if not isinstance(raw, str):
            return raw
        return json.loads(raw) if raw.strip() else None
