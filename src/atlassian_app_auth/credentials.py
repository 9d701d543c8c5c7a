"""Load Connect app credentials from a JSON file or the environment."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from atlassian_app_auth.errors import InvalidInput
from atlassian_app_auth.types import Credentials

CREDENTIALS_PATH_ENV = "ATLASSIAN_APP_CREDENTIALS"
APP_KEY_ENV = "ATLASSIAN_APP_KEY"
SHARED_SECRET_ENV = "ATLASSIAN_APP_SHARED_SECRET"

# (issuer field, secret field): the install callback payload, then the CLI credentials file.
_FIELD_SHAPES = (("clientKey", "sharedSecret"), ("key", "secret"))


def _resolve_path(explicit: str | os.PathLike[str] | None) -> Path:
    value = explicit or os.environ.get(CREDENTIALS_PATH_ENV)
    if not value:
        raise InvalidInput(
            f"No credentials file given. Pass a path or set {CREDENTIALS_PATH_ENV}.",
        )
    return Path(value)


def credentials_from_dict(raw: dict[str, Any]) -> Credentials:
    """Read either ``{"key", "secret"}`` or an installation payload.

    For an installation payload the issuer is ``clientKey``, the ``iss`` the
    product puts on the tokens it sends to the app.
    """

    for issuer_field, secret_field in _FIELD_SHAPES:
        if secret_field not in raw:
            continue
        issuer = raw.get(issuer_field)
        secret = raw.get(secret_field)
        if not isinstance(issuer, str) or not issuer.strip():
            raise InvalidInput(f"Credentials field '{issuer_field}' must be a non-empty string")
        if not isinstance(secret, str) or not secret:
            raise InvalidInput(f"Credentials field '{secret_field}' must be a non-empty string")
        return Credentials(issuer=issuer.strip(), shared_secret=secret)

    raise InvalidInput("Credentials must contain 'key'/'secret' or 'clientKey'/'sharedSecret'")


def load_credentials(path: str | os.PathLike[str] | None = None) -> Credentials:
    credentials_path = _resolve_path(path)

    if not credentials_path.exists():
        raise InvalidInput(f"Credentials file not found: {credentials_path}")

    try:
        raw = json.loads(credentials_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as error:
        raise InvalidInput(f"Failed to parse credentials file {credentials_path}: {error}") from error

    if not isinstance(raw, dict):
        raise InvalidInput(f"Credentials file {credentials_path} is invalid")

    return credentials_from_dict(raw)


def credentials_from_env() -> Credentials:
    issuer = os.environ.get(APP_KEY_ENV, "").strip()
    secret = os.environ.get(SHARED_SECRET_ENV, "")
    if not issuer or not secret:
        raise InvalidInput(f"Set {APP_KEY_ENV} and {SHARED_SECRET_ENV} to use environment credentials")
    return Credentials(issuer=issuer, shared_secret=secret)
