"""
api/routes/auth.py -- Account lifecycle and token revocation REST endpoints.

Routes:
  POST /auth/register                  -- create a guest account (public)
  POST /auth/login                     -- password login; returns the raw token (public)
  POST /auth/tokens/revoke/{username}  -- rotate a user's token secret (requires auth)
  POST /auth/tokens/passwordreset      -- change a password (requires auth)
  POST /auth/changeroles               -- change the caller's role (requires auth)
  POST /auth/tokens/revokeolder        -- move the global revocation watermark (requires auth)

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit).
  Cache-Control: no-store on login responses.
  Handlers that run bcrypt are plain def so FastAPI runs them in the
  threadpool instead of blocking the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from api.limiter import limiter
from api.models import (
    ChangeRoleRequest,
    LoginRequest,
    MessageResponse,
    PasswordResetRequest,
    RegisterRequest,
    RevokeOlderRequest,
)
from auth.accounts import change_role, login_user, register_user, reset_password
from auth.dependencies import get_current_claims
from auth.models import TokenClaims
from auth.revocation import RevocationWatermark, revoke_by_date, revoke_by_user
from auth.store import UserStore
from core.config import get_settings

# Auth policy:
# - POST /auth/register:                  public
# - POST /auth/login:                     public -- login endpoint must be unauthenticated
# - POST /auth/tokens/revoke/{username}:  requires auth (get_current_claims)
# - POST /auth/tokens/passwordreset:      requires auth (get_current_claims)
# - POST /auth/changeroles:               requires auth; acts on the token's username
# - POST /auth/tokens/revokeolder:        requires auth (get_current_claims)
router = APIRouter()


def _login_rate_limit() -> str:
    # slowapi calls this on every request.
    return get_settings().login_rate_limit


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=MessageResponse)
def register(request: Request, body: RegisterRequest) -> MessageResponse:
    """Create a new account with role "guest" and a fresh token secret."""
    user_store: UserStore = request.app.state.user_store
    register_user(user_store, body.username, body.email, body.password)
    return MessageResponse(message="User created successfully")


@limiter.limit(_login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_class=PlainTextResponse)
def login(request: Request, body: LoginRequest) -> PlainTextResponse:
    """Authenticate with username and password; return the signed token as plain text.

    The token expires one day after issue and is signed with the user's
    current secret, so it dies early on revoke-by-name or a role change.
    """
    user_store: UserStore = request.app.state.user_store
    token = login_user(user_store, body.username, body.password)
    resp = PlainTextResponse(content=token, status_code=200)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/tokens/revoke/{username}", response_model=MessageResponse)
async def revoke(
    request: Request,
    username: str,
    claims: TokenClaims = Depends(get_current_claims),
) -> MessageResponse:
    """Rotate the named user's token secret. Their issued tokens stop working immediately."""
    user_store: UserStore = request.app.state.user_store
    revoke_by_user(user_store, username)
    return MessageResponse(message="revoked")


@router.post("/auth/tokens/passwordreset", response_model=MessageResponse)
def password_reset(
    request: Request,
    body: PasswordResetRequest,
    claims: TokenClaims = Depends(get_current_claims),
) -> MessageResponse:
    """Replace a password after verifying the old one."""
    user_store: UserStore = request.app.state.user_store
    reset_password(user_store, body.username, body.oldpassword, body.newpassword)
    return MessageResponse(message="Password reset OK")


@router.post("/auth/changeroles", response_model=MessageResponse)
async def change_roles(
    request: Request,
    body: ChangeRoleRequest,
    claims: TokenClaims = Depends(get_current_claims),
) -> MessageResponse:
    """Set the caller's role. The token used for this call stops authorizing afterwards."""
    user_store: UserStore = request.app.state.user_store
    change_role(user_store, claims.username, body.role)
    return MessageResponse(message="Role update ok")


@router.post("/auth/tokens/revokeolder", response_model=MessageResponse)
async def revoke_older(
    request: Request,
    body: RevokeOlderRequest,
    claims: TokenClaims = Depends(get_current_claims),
) -> MessageResponse:
    """Reject every token issued before body.datetime (epoch ms), for all users."""
    watermark: RevocationWatermark = request.app.state.watermark
    older_than = revoke_by_date(watermark, body.datetime)
    return MessageResponse(message=f"Rejecting now tokens older than {older_than}")
