"""
auth/errors.py -- Exception taxonomy for authorization and account operations.

Every error carries the HTTP status and machine-readable code the API layer
returns, so services raise them directly and api/main.py turns them into the
standard error envelope with one handler.

Authorization rejections are 401/404. StoreUnavailable is a 500 so clients can
tell "you are not allowed" apart from "the service is broken".

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base exception for Gatehouse auth failures."""

    status_code: int = 401
    code: str = "unauthorized"
    message: str = "Unauthorized."

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Authorization (bearer token) failures
# ---------------------------------------------------------------------------


class MalformedCredential(AuthError):
    code = "malformed_credential"
    message = "Wrong Bearer format"


class MalformedToken(MalformedCredential):
    """Token could not be parsed, or a required claim is missing."""

    code = "malformed_token"
    message = "Malformed token"


class UnknownUser(AuthError):
    status_code = 404
    code = "unknown_user"
    message = "No user in DB"


class RoleMismatch(AuthError):
    code = "role_mismatch"
    message = "Role not high enough"


class TokenExpiredByWatermark(AuthError):
    code = "token_expired_by_watermark"
    message = "Your token is expired"


class InvalidSignature(AuthError):
    code = "invalid_signature"
    message = "Invalid token"


class TokenExpired(AuthError):
    """Token is past its built-in one-day lifetime."""

    code = "token_expired"
    message = "Token lifetime exceeded"


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class StoreUnavailable(AuthError):
    status_code = 500
    code = "store_unavailable"
    message = "Query on DB failed"


# ---------------------------------------------------------------------------
# Account lifecycle
# ---------------------------------------------------------------------------


class DuplicateUser(AuthError):
    status_code = 409
    code = "duplicate_user"
    message = "User already exists in DB"


class WrongPassword(AuthError):
    code = "wrong_password"
    message = "Wrong password"


class UserNotFound(AuthError):
    status_code = 404
    code = "user_not_found"
    message = "User not found"
