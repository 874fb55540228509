"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

One auth method: the Authorization: Bearer <token> header, checked by
auth.authorization.authorize() against the user's current secret, role and
the global revocation watermark.

get_current_claims() raises the AuthError from authorize() unchanged;
api/main.py turns it into a 401/404/500 response.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.authorization import authorize
from auth.models import TokenClaims


def get_current_claims(request: Request) -> TokenClaims:
    """Require a valid bearer token. Returns its claims.

    The claims are also stored on request.state.claims for code that has the
    request but not the dependency result.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(claims: TokenClaims = Depends(get_current_claims)): ...
    """
    claims = authorize(
        request.headers.get("Authorization"),
        request.app.state.user_store,
        request.app.state.watermark,
    )
    request.state.claims = claims
    return claims
