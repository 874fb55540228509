"""Unit tests for auth/store.py -- UserStore queries and updates.

Covers:
- create_user() / get_by_username() round trip, including Role mapping
- UNIQUE(username) surfaces as IntegrityError and keeps the first record
- update_user() field whitelist and rowcount semantics
- update_password() only applies when the old hash still matches
- rotate_token_secret() swaps the secret and sets invalidated
- watermark row is seeded at 0 and persists across store instances
- driver errors become StoreUnavailable
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.errors import StoreUnavailable
from auth.models import Role, User
from auth.store import UserStore


def _user(username: str = "alice", **overrides) -> User:
    fields = dict(
        username=username,
        email=f"{username}@x.com",
        hashed_password="hash-1",
        token_secret="secret-1",
    )
    fields.update(overrides)
    return User(**fields)


class TestUsers:
    def test_create_and_get(self, store: UserStore):
        user_id = store.create_user(_user())
        user = store.get_by_username("alice")
        assert user is not None
        assert user.id == user_id
        assert user.email == "alice@x.com"
        assert user.role is Role.guest
        assert user.invalidated is False
        assert user.created_at

    def test_get_unknown_returns_none(self, store: UserStore):
        assert store.get_by_username("nobody") is None

    def test_username_lookup_is_case_sensitive(self, store: UserStore):
        store.create_user(_user())
        assert store.get_by_username("Alice") is None

    def test_duplicate_username_raises_and_keeps_first(self, store: UserStore):
        store.create_user(_user(email="first@x.com"))
        with pytest.raises(IntegrityError):
            store.create_user(_user(email="second@x.com"))
        assert store.get_by_username("alice").email == "first@x.com"

    def test_update_role(self, store: UserStore):
        store.create_user(_user())
        assert store.update_user("alice", role=Role.admin) is True
        assert store.get_by_username("alice").role is Role.admin

    def test_update_role_accepts_plain_string(self, store: UserStore):
        store.create_user(_user())
        store.update_user("alice", role="user")
        assert store.get_by_username("alice").role is Role.user

    def test_update_missing_user_returns_false(self, store: UserStore):
        assert store.update_user("nobody", role=Role.admin) is False

    def test_update_rejects_unknown_fields(self, store: UserStore):
        store.create_user(_user())
        with pytest.raises(ValueError):
            store.update_user("alice", token_secret="sneaky")


class TestPasswordUpdate:
    def test_applies_when_old_hash_matches(self, store: UserStore):
        store.create_user(_user())
        assert store.update_password("alice", "hash-1", "hash-2") is True
        assert store.get_by_username("alice").hashed_password == "hash-2"

    def test_stale_old_hash_is_a_no_op(self, store: UserStore):
        store.create_user(_user())
        store.update_password("alice", "hash-1", "hash-2")
        assert store.update_password("alice", "hash-1", "hash-3") is False
        assert store.get_by_username("alice").hashed_password == "hash-2"


class TestRotateSecret:
    def test_rotates_and_flags_invalidated(self, store: UserStore):
        store.create_user(_user())
        assert store.rotate_token_secret("alice", "secret-2") is True
        user = store.get_by_username("alice")
        assert user.token_secret == "secret-2"
        assert user.invalidated is True

    def test_missing_user_returns_false(self, store: UserStore):
        assert store.rotate_token_secret("nobody", "secret-2") is False


class TestWatermark:
    def test_seeded_at_zero(self, store: UserStore):
        assert store.get_watermark() == 0

    def test_set_and_get(self, store: UserStore):
        store.set_watermark(1_700_000_000_000)
        assert store.get_watermark() == 1_700_000_000_000

    def test_survives_a_new_store_on_the_same_database(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'auth.db'}"
        first = UserStore(url)
        first.set_watermark(42)
        first.close()
        second = UserStore(url)
        try:
            assert second.get_watermark() == 42
        finally:
            second.close()


class TestFailures:
    def test_missing_table_surfaces_as_store_unavailable(self, store: UserStore):
        with store.engine.connect() as conn:
            conn.exec_driver_sql("DROP TABLE users")
            conn.commit()
        with pytest.raises(StoreUnavailable):
            store.get_by_username("alice")

    def test_ping(self, store: UserStore):
        assert store.ping() is True
