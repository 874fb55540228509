"""
auth/tokens.py -- Token codec, per-user secrets, and password hashing.

Security design decisions:
  JWT: python-jose with HS256. There is no global signing key: each token is
       signed with the issuing user's token_secret, so rotating that secret
       revokes every token the user holds without keeping a denylist.
       Claims are exactly username, email, role and iat (milliseconds since
       the epoch), plus exp (seconds, as RFC 7519 requires).

  Decoding is split in two. decode_unverified() reads the claims without a
       key, only to learn whose secret to fetch. verify_token() then checks
       signature and expiry against that secret. Neither returns None on
       failure; both raise the matching AuthError subclass.

  Secrets: secrets.token_urlsafe() trimmed to a fixed length. URL-safe base64
       alphabet, 64 characters by default (384 bits of entropy).

  Passwords: bcrypt directly, no passlib wrapper. Cost factor comes from
       Settings.bcrypt_rounds (default 10).

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
import time

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import InvalidSignature, MalformedToken, TokenExpired
from auth.models import TokenClaims
from core.config import get_settings

logger = logging.getLogger("gatehouse.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# bcrypt only reads the first 72 bytes of input; bcrypt 5 rejects anything longer.
BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ValueError if the UTF-8 encoding is longer than BCRYPT_MAX_BYTES.
    The request models reject such passwords with a 422 before they get here.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValueError(f"password is longer than {BCRYPT_MAX_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


# ---------------------------------------------------------------------------
# Per-user token secrets
# ---------------------------------------------------------------------------


def generate_token_secret(length: int | None = None) -> str:
    """Return a random secret of exactly `length` URL-safe base64 characters."""
    size = length or _settings.token_secret_length
    # token_urlsafe(n) yields ~1.33n characters, so n bytes always suffice.
    return secrets.token_urlsafe(size)[:size]


def now_millis() -> int:
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Token codec
# ---------------------------------------------------------------------------


def issue_token(
    username: str,
    email: str,
    role: str,
    secret: str,
    issued_at: int | None = None,
    expire_seconds: int | None = None,
) -> str:
    """Encode a signed JWT for one user.

    Args:
        username:       Identity claim; also the key used to find the secret.
        email:          Copied into the token as-is.
        role:           Role at issue time. A later role change invalidates it.
        secret:         The user's current token_secret.
        issued_at:      iat in epoch milliseconds. Defaults to now.
        expire_seconds: Lifetime. Defaults to Settings.token_expire_seconds.
    """
    iat = now_millis() if issued_at is None else issued_at
    duration = _settings.token_expire_seconds if expire_seconds is None else expire_seconds
    payload = {
        "username": username,
        "email": email,
        "role": str(getattr(role, "value", role)),
        "iat": iat,
        "exp": iat // 1000 + duration,
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def decode_unverified(token: str) -> TokenClaims:
    """Read the claims of a token without checking its signature.

    Only used to discover which user's secret to verify against. The result
    must not be trusted until verify_token() has passed.

    Raises MalformedToken if the token cannot be parsed or lacks a claim.
    """
    try:
        payload = jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise MalformedToken(detail=str(exc)) from exc

    username = payload.get("username")
    email = payload.get("email")
    role = payload.get("role")
    iat = payload.get("iat")
    if not isinstance(username, str) or not isinstance(email, str) or not isinstance(role, str):
        raise MalformedToken(detail="username, email and role claims are required")
    if not isinstance(iat, int) or isinstance(iat, bool):
        raise MalformedToken(detail="iat claim must be an integer")
    return TokenClaims(username=username, email=email, role=role, iat=iat)


def verify_token(token: str, secret: str) -> dict:
    """Check signature and built-in expiry. Returns the verified payload.

    Raises:
        TokenExpired:     exp is in the past.
        InvalidSignature: any other verification failure (wrong secret,
                          tampered payload, unexpected algorithm).
    """
    try:
        return jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpired(detail=str(exc)) from exc
    except JWTError as exc:
        raise InvalidSignature(detail=str(exc)) from exc
