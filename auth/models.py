"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store and the authorization engine do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Recognized role labels.

    The role is embedded in every token and compared against the stored value
    on each request, so an unknown label would lock its holder out. Keeping the
    set closed turns a typo into a validation error instead.
    """

    guest = "guest"
    user = "user"
    admin = "admin"


@dataclass
class User:
    """One row of the users table.

    token_secret signs every token issued to this user. Replacing it is how a
    single user's tokens are revoked.

    invalidated is set when the secret is rotated by revoke-by-name. The
    authorization flow does not read it.
    """

    username: str
    email: str
    hashed_password: str
    token_secret: str
    role: Role = Role.guest
    invalidated: bool = False
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """The identity carried by a bearer token.

    iat is milliseconds since the epoch.
    """

    username: str
    email: str
    role: str
    iat: int

    def to_payload(self) -> dict:
        return {"username": self.username, "email": self.email, "role": self.role, "iat": self.iat}
