"""
auth/authorization.py -- Decide whether a presented bearer token is valid right now.

Checks run in a fixed order and the first failure wins:

  1. "Bearer <token>" scheme                      -> MalformedCredential
  2. claims readable without a key                -> MalformedToken
  3. user exists (store errors surface as-is)     -> UnknownUser / StoreUnavailable
  4. role claim equals the stored role            -> RoleMismatch
  5. iat >= revocation watermark                  -> TokenExpiredByWatermark
  6. signature and exp against the user's secret  -> InvalidSignature / TokenExpired

Structural and lookup failures are reported before any HMAC is computed.
Step 4 means a role change silently revokes every token issued under the
previous role.

The invalidated flag on the user record is not consulted.

Layer rule: no imports from api/. FastAPI wiring lives in auth/dependencies.py.
"""

from __future__ import annotations

import logging

from auth.errors import (
    AuthError,
    MalformedCredential,
    RoleMismatch,
    TokenExpiredByWatermark,
    UnknownUser,
)
from auth.models import TokenClaims
from auth.revocation import RevocationWatermark
from auth.store import UserStore
from auth.tokens import decode_unverified, verify_token

logger = logging.getLogger("gatehouse.authorization")

_SCHEME = "Bearer "


def parse_bearer(authorization: str | None) -> str:
    """Return the token from an Authorization header value."""
    if not authorization or not authorization.startswith(_SCHEME):
        raise MalformedCredential()
    token = authorization[len(_SCHEME) :].strip()
    if not token:
        raise MalformedCredential()
    return token


def authorize(authorization: str | None, store: UserStore, watermark: RevocationWatermark) -> TokenClaims:
    """Validate an Authorization header value and return the token's claims.

    Raises an AuthError subclass on rejection; see the module docstring for
    which check raises what.
    """
    username = None
    try:
        token = parse_bearer(authorization)
        claims = decode_unverified(token)
        username = claims.username

        user = store.get_by_username(claims.username)
        if user is None:
            raise UnknownUser()

        if claims.role != user.role.value:
            raise RoleMismatch()

        if claims.iat < watermark.older_than:
            raise TokenExpiredByWatermark()

        verify_token(token, user.token_secret)
    except AuthError as exc:
        logger.warning("Rejected bearer token (%s) for %s", exc.code, username or "<unknown>")
        raise
    return claims
