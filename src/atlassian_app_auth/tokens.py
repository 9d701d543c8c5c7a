"""Build and verify HS256 Connect JWTs bound to a single request by ``qsh``."""

from __future__ import annotations

import hmac
import logging
import math
import numbers
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from atlassian_app_auth.canonical import query_string_hash
from atlassian_app_auth.errors import (
    EncodingError,
    InvalidInput,
    InvalidIssuer,
    InvalidSignature,
    MalformedToken,
    RequestMismatch,
    TokenExpired,
    TokenNotYetValid,
    VerificationError,
)
from atlassian_app_auth.types import (
    AuthHeader,
    Credentials,
    HeaderInput,
    HttpRequestDescriptor,
    QueryInput,
    VerifiedClaims,
    normalize_query,
)

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
AUTH_SCHEME = "JWT"
JWT_QUERY_PARAM = "jwt"
CONTEXT_QSH = "context-qsh"
DEFAULT_VALID_FOR_SECONDS = 180
REGISTERED_CLAIMS = frozenset({"iss", "iat", "exp", "qsh"})


def _epoch_seconds(value: float | datetime, name: str) -> int:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise InvalidInput(f"{name} must be timezone-aware")
        return math.floor(value.timestamp())
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidInput(f"{name} must be epoch seconds or a datetime")
    if not math.isfinite(value):
        raise InvalidInput(f"{name} must be a finite number")
    return int(math.floor(value))


def _ttl_seconds(ttl: int | timedelta) -> int:
    if isinstance(ttl, timedelta):
        seconds = int(ttl.total_seconds())
    elif isinstance(ttl, bool) or not isinstance(ttl, int):
        raise InvalidInput("ttl must be whole seconds or a timedelta")
    else:
        seconds = ttl
    if seconds <= 0:
        raise InvalidInput(f"ttl must be positive, got {seconds}")
    return seconds


def _check_credentials(credentials: Credentials) -> None:
    if not isinstance(credentials.issuer, str) or not credentials.issuer:
        raise InvalidInput("Credentials issuer is required")
    if not isinstance(credentials.shared_secret, (str, bytes)) or not credentials.shared_secret:
        raise InvalidInput("Credentials shared secret is required")


def build_token(
    credentials: Credentials,
    request: HttpRequestDescriptor,
    issued_at: float | datetime,
    ttl: int | timedelta,
    extra_claims: Mapping[str, Any] | None = None,
) -> str:
    _check_credentials(credentials)
    iat = _epoch_seconds(issued_at, "issued_at")
    exp = iat + _ttl_seconds(ttl)

    claims: dict[str, Any] = {}
    if extra_claims:
        clashing = REGISTERED_CLAIMS.intersection(extra_claims)
        if clashing:
            raise InvalidInput(f"Extra claims may not override {', '.join(sorted(clashing))}")
        claims.update(extra_claims)

    claims.update(
        iss=credentials.issuer,
        iat=iat,
        exp=exp,
        qsh=query_string_hash(request),
    )

    try:
        return jwt.encode(claims, credentials.shared_secret, algorithm=ALGORITHM)
    except (TypeError, ValueError) as error:
        raise EncodingError(f"Could not serialize JWT claims: {error}") from error


def create_auth_header(
    credentials: Credentials,
    request: HttpRequestDescriptor,
    *,
    valid_for: int | timedelta = DEFAULT_VALID_FOR_SECONDS,
    now: float | datetime | None = None,
    extra_claims: Mapping[str, Any] | None = None,
) -> AuthHeader:
    issued_at = now if now is not None else int(datetime.now(timezone.utc).timestamp())
    token = build_token(credentials, request, issued_at, valid_for, extra_claims)
    return AuthHeader(name="Authorization", value=f"{AUTH_SCHEME} {token}")


def _reject(error: VerificationError) -> VerificationError:
    logger.debug("Rejected Connect JWT (%s): %s", error.code, error)
    return error


def _decode(credentials: Credentials, token: str) -> dict[str, Any]:
    if not isinstance(token, str) or token.count(".") != 2:
        raise _reject(MalformedToken("Token is not a compact JWS"))

    try:
        return jwt.decode(
            token,
            credentials.shared_secret,
            algorithms=[ALGORITHM],
            options={
                "verify_signature": True,
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "verify_aud": False,
                "verify_iss": False,
                "verify_sub": False,
                "verify_jti": False,
            },
        )
    except jwt.InvalidSignatureError as error:
        raise _reject(InvalidSignature("Signature verification failed")) from error
    except jwt.InvalidAlgorithmError as error:
        raise _reject(MalformedToken(f"Only {ALGORITHM} tokens are accepted")) from error
    except jwt.InvalidTokenError as error:
        raise _reject(MalformedToken(f"Could not decode token: {error}")) from error


def _int_claim(claims: Mapping[str, Any], name: str) -> int:
    value = claims.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise _reject(MalformedToken(f"Claim '{name}' must be an integer"))
    return value


def _str_claim(claims: Mapping[str, Any], name: str) -> str:
    value = claims.get(name)
    if not isinstance(value, str) or not value:
        raise _reject(MalformedToken(f"Claim '{name}' must be a non-empty string"))
    return value


def verify_token(
    credentials: Credentials,
    token: str,
    request: HttpRequestDescriptor,
    now: float | datetime,
    *,
    leeway: int = 0,
    allow_context_qsh: bool = False,
) -> VerifiedClaims:
    """Verify ``token`` for ``request`` and return its claims.

    Checks run in a fixed order and the first failure aborts: structure and
    algorithm, signature, claim types, issuer, time window, then the query
    string hash. ``now`` must be inside ``[iat - leeway, exp + leeway]``.
    """

    _check_credentials(credentials)
    now_seconds = _epoch_seconds(now, "now")
    if isinstance(leeway, bool) or not isinstance(leeway, int) or leeway < 0:
        raise InvalidInput("leeway must be a non-negative integer")

    claims = _decode(credentials, token)

    issuer = _str_claim(claims, "iss")
    issued_at = _int_claim(claims, "iat")
    expires_at = _int_claim(claims, "exp")
    token_qsh = _str_claim(claims, "qsh")

    if not hmac.compare_digest(issuer.encode("utf-8"), credentials.issuer.encode("utf-8")):
        raise _reject(InvalidIssuer("Token issuer does not match"))
    if now_seconds > expires_at + leeway:
        raise _reject(TokenExpired(f"Token expired at {expires_at}"))
    if now_seconds < issued_at - leeway:
        raise _reject(TokenNotYetValid(f"Token is not valid before {issued_at}"))

    if not (allow_context_qsh and token_qsh == CONTEXT_QSH):
        expected_qsh = query_string_hash(request)
        if not hmac.compare_digest(token_qsh.encode("utf-8"), expected_qsh.encode("utf-8")):
            raise _reject(RequestMismatch("Query string hash does not match the request"))

    subject = claims.get("sub")
    return VerifiedClaims(
        issuer=issuer,
        issued_at=issued_at,
        expires_at=expires_at,
        qsh=token_qsh,
        subject=subject if isinstance(subject, str) else None,
        context=claims.get("context"),
        claims=dict(claims),
    )


def extract_token(headers: HeaderInput | None = None, query: QueryInput = None) -> str:
    """Return the JWT carried by ``Authorization: JWT <token>`` or the ``jwt`` query parameter."""

    authorization = None
    if headers:
        entries = headers.items() if isinstance(headers, dict) else headers
        for entry in entries:
            if len(entry) != 2:
                raise InvalidInput("Header entries must be [name, value]")
            if str(entry[0]).lower() == "authorization":
                authorization = str(entry[1]).strip()

    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.upper() == AUTH_SCHEME and value.strip():
            return value.strip()

    for key, value in normalize_query(query):
        if key == JWT_QUERY_PARAM and value:
            return value

    raise _reject(MalformedToken("No Connect JWT found in the Authorization header or query"))
