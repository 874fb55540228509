"""
API request and response models for Gatehouse REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Field names follow the public wire contract (oldpassword, newpassword,
datetime), not Python naming.

Whitespace is stripped from usernames and emails only. Passwords are taken
exactly as sent.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from auth.models import Role
from auth.tokens import BCRYPT_MAX_BYTES

_Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
_Password = Annotated[str, Field(min_length=1)]


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"password must be at most {BCRYPT_MAX_BYTES} bytes in UTF-8")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    username: _Name
    email: _Name
    password: _Password

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password_bytes(v)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login.

    email is accepted for contract compatibility; the token's email claim is
    taken from the stored record.
    """

    username: _Name
    email: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]] = None
    password: _Password

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password_bytes(v)


class PasswordResetRequest(BaseModel):
    """Request body for POST /auth/tokens/passwordreset."""

    username: _Name
    oldpassword: _Password
    newpassword: _Password

    @field_validator("oldpassword", "newpassword")
    @classmethod
    def passwords_fit_bcrypt(cls, v: str) -> str:
        return _check_password_bytes(v)


class ChangeRoleRequest(BaseModel):
    """Request body for POST /auth/changeroles. Unknown roles fail with 422."""

    role: Role


class RevokeOlderRequest(BaseModel):
    """Request body for POST /auth/tokens/revokeolder.

    datetime is the new watermark in epoch milliseconds.
    """

    datetime: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class UserPublicResponse(BaseModel):
    """Response for GET /users/{username}. Never includes hash or secret."""

    model_config = ConfigDict(frozen=True)

    email: str
    username: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
