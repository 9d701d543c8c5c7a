"""Error taxonomy for token building, canonicalization and verification.

Every error carries a stable ``code`` for logs. Verification errors also carry
a ``public_message`` that is safe to return to the caller of an endpoint: it
never says which check failed.
"""

from __future__ import annotations


class AppAuthError(ValueError):
    code = "app_auth_error"


class InvalidInput(AppAuthError):
    code = "invalid_input"


class EncodingError(AppAuthError):
    code = "encoding_error"


class UnsupportedQueryEncoding(AppAuthError):
    code = "unsupported_query_encoding"


class VerificationError(AppAuthError):
    code = "verification_failed"
    public_message = "Unauthorized"


class MalformedToken(VerificationError):
    code = "malformed_token"


class InvalidSignature(VerificationError):
    code = "invalid_signature"


class InvalidIssuer(VerificationError):
    code = "invalid_issuer"


class TokenExpired(VerificationError):
    code = "token_expired"


class TokenNotYetValid(VerificationError):
    code = "token_not_yet_valid"


class RequestMismatch(VerificationError):
    code = "request_mismatch"
