"""
auth/accounts.py -- Account lifecycle: register, login, profile, password reset, role change.

Thin orchestration over UserStore, bcrypt and the token codec. Route handlers
call these functions and never touch the store for writes themselves.

Errors are raised as AuthError subclasses and mapped to HTTP responses by
api/main.py.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateUser, UserNotFound, WrongPassword
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import generate_token_secret, hash_password, issue_token, verify_password

logger = logging.getLogger("gatehouse.accounts")


def register_user(store: UserStore, username: str, email: str, password: str) -> int:
    """Create a guest account with a fresh token secret. Returns the new user ID.

    The existence check gives the common case a clean error; the UNIQUE
    constraint catches the race where two registrations pass it together.
    """
    if store.get_by_username(username) is not None:
        raise DuplicateUser()

    user = User(
        username=username,
        email=email,
        hashed_password=hash_password(password),
        token_secret=generate_token_secret(),
        role=Role.guest,
    )
    try:
        user_id = store.create_user(user)
    except IntegrityError as exc:
        raise DuplicateUser() from exc
    logger.info("Registered user %s", username)
    return user_id


def login_user(store: UserStore, username: str, password: str) -> str:
    """Check the password and return a token signed with the user's current secret.

    Email and role claims come from the stored record, not from the request.
    """
    user = store.get_by_username(username)
    if user is None:
        raise UserNotFound("User not found in DB")
    if not verify_password(password, user.hashed_password):
        raise WrongPassword()
    return issue_token(user.username, user.email, user.role, user.token_secret)


def get_user_profile(store: UserStore, username: str) -> User:
    user = store.get_by_username(username)
    if user is None:
        raise UserNotFound()
    return user


def reset_password(store: UserStore, username: str, old_password: str, new_password: str) -> None:
    """Replace the password after checking the old one.

    Issued tokens stay valid; the token secret is untouched.
    """
    user = store.get_by_username(username)
    if user is None:
        raise UserNotFound("User not found in DB")
    if not verify_password(old_password, user.hashed_password):
        raise WrongPassword("passwordreset: wrong credentials")
    # Conditional on the hash we just checked, so a concurrent reset wins cleanly.
    if not store.update_password(username, user.hashed_password, hash_password(new_password)):
        raise WrongPassword("passwordreset: wrong credentials")
    logger.info("Password reset for %s", username)


def change_role(store: UserStore, username: str, role: Role) -> None:
    """Set the user's role. Tokens carrying the previous role stop authorizing."""
    if not store.update_user(username, role=role):
        raise UserNotFound()
    logger.info("Role of %s changed to %s", username, Role(role).value)
