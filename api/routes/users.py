"""
api/routes/users.py -- User lookup endpoint.

Routes:
  GET /users/{username}  -- email and username of any user (requires auth)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import UserPublicResponse
from auth.accounts import get_user_profile
from auth.dependencies import get_current_claims
from auth.models import TokenClaims
from auth.store import UserStore

router = APIRouter()


@router.get("/users/{username}", response_model=UserPublicResponse)
async def get_user(
    request: Request,
    username: str,
    claims: TokenClaims = Depends(get_current_claims),
) -> UserPublicResponse:
    """Return the public profile of a user. 404 if the username is unknown."""
    user_store: UserStore = request.app.state.user_store
    user = get_user_profile(user_store, username)
    return UserPublicResponse(email=user.email, username=user.username)
