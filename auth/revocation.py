"""
auth/revocation.py -- The two ways to invalidate tokens that were already issued.

  revoke_by_user():  rotate one user's token_secret. Every token that user
                     holds stops verifying at once; there is no grace period.

  revoke_by_date():  move the global watermark. Every token with
                     iat < watermark is rejected, whoever it belongs to.

Both are forward-only from the token's point of view: a rotated secret is
never restored. The watermark is last-write-wins unless ratchet mode is on,
in which case it only ever moves forward.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import threading

from auth.errors import UserNotFound
from auth.store import UserStore
from auth.tokens import generate_token_secret

logger = logging.getLogger("gatehouse.revocation")


class RevocationWatermark:
    """Process-wide minimum issue time, in epoch milliseconds.

    Reads and writes go through one lock, so authorize() always sees a whole
    value. When a store is given, the persisted value is loaded on
    construction and every change is written to the store before it becomes
    visible in memory; a store failure leaves the old value in place.
    """

    def __init__(self, store: UserStore | None = None, ratchet: bool = False) -> None:
        self._lock = threading.Lock()
        self._store = store
        self._ratchet = ratchet
        self._older_than = store.get_watermark() if store is not None else 0

    @property
    def older_than(self) -> int:
        with self._lock:
            return self._older_than

    def advance(self, threshold: int) -> int:
        """Set the watermark to threshold and return the value now in effect."""
        with self._lock:
            new_value = max(self._older_than, threshold) if self._ratchet else threshold
            if self._store is not None:
                self._store.set_watermark(new_value)
            self._older_than = new_value
        return new_value


def revoke_by_user(store: UserStore, username: str) -> None:
    """Rotate the user's token_secret and flag them invalidated.

    Raises UserNotFound if no such user, StoreUnavailable on store failure.
    """
    if not store.rotate_token_secret(username, generate_token_secret()):
        raise UserNotFound()
    logger.info("Rotated token secret for %s", username)


def revoke_by_date(watermark: RevocationWatermark, threshold: int) -> int:
    """Reject every token issued before threshold (epoch ms).

    Returns the watermark now in effect, which differs from threshold only in
    ratchet mode when threshold is older than the current value.
    """
    current = watermark.advance(threshold)
    if current != threshold:
        logger.info("Watermark kept at %d (ratchet; requested %d)", current, threshold)
    else:
        logger.info("Watermark set to %d", current)
    return current
