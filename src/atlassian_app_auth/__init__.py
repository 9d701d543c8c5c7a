"""Atlassian Connect app auth: query string hashing and HS256 JWTs bound to requests."""

from atlassian_app_auth.canonical import (
    RESERVED_QUERY_PARAMS,
    canonical_path,
    canonical_query,
    canonical_request,
    canonicalize,
    hash_canonical_request,
    percent_encode,
    query_string_hash,
    request_from_url,
)
from atlassian_app_auth.client import AppAuthClient
from atlassian_app_auth.credentials import credentials_from_env, load_credentials
from atlassian_app_auth.errors import (
    AppAuthError,
    EncodingError,
    InvalidInput,
    InvalidIssuer,
    InvalidSignature,
    MalformedToken,
    RequestMismatch,
    TokenExpired,
    TokenNotYetValid,
    UnsupportedQueryEncoding,
    VerificationError,
)
from atlassian_app_auth.tokens import (
    CONTEXT_QSH,
    build_token,
    create_auth_header,
    extract_token,
    verify_token,
)
from atlassian_app_auth.types import (
    AuthHeader,
    Credentials,
    HttpRequestDescriptor,
    SignedRequest,
    VerifiedClaims,
)

__all__ = [
    "CONTEXT_QSH",
    "RESERVED_QUERY_PARAMS",
    "AppAuthClient",
    "AppAuthError",
    "AuthHeader",
    "Credentials",
    "EncodingError",
    "HttpRequestDescriptor",
    "InvalidInput",
    "InvalidIssuer",
    "InvalidSignature",
    "MalformedToken",
    "RequestMismatch",
    "SignedRequest",
    "TokenExpired",
    "TokenNotYetValid",
    "UnsupportedQueryEncoding",
    "VerificationError",
    "VerifiedClaims",
    "build_token",
    "canonical_path",
    "canonical_query",
    "canonical_request",
    "canonicalize",
    "create_auth_header",
    "credentials_from_env",
    "extract_token",
    "hash_canonical_request",
    "load_credentials",
    "percent_encode",
    "query_string_hash",
    "request_from_url",
    "verify_token",
]

__version__ = "0.1.0"
