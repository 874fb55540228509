"""Unit tests for auth/authorization.py -- the ordered bearer-token checks.

Covers:
- a freshly issued token authorizes and yields its claims
- each check rejects with its own error
- ordering: earlier checks win when several would fail
- store failures surface as StoreUnavailable, not as an auth rejection
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from auth.accounts import login_user
from auth.authorization import authorize, parse_bearer
from auth.errors import (
    InvalidSignature,
    MalformedCredential,
    MalformedToken,
    RoleMismatch,
    StoreUnavailable,
    TokenExpired,
    TokenExpiredByWatermark,
    UnknownUser,
)
from auth.revocation import RevocationWatermark, revoke_by_user
from auth.store import UserStore
from auth.tokens import decode_unverified, issue_token, now_millis


def _bearer(token: str) -> str:
    return f"Bearer {token}"


class TestParseBearer:
    def test_extracts_token(self):
        assert parse_bearer("Bearer abc.def.ghi") == "abc.def.ghi"

    @pytest.mark.parametrize("header", [None, "", "abc.def.ghi", "Basic dXNlcjpwdw==", "bearer abc", "Bearer "])
    def test_rejects_other_shapes(self, header):
        with pytest.raises(MalformedCredential):
            parse_bearer(header)


class TestAuthorize:
    def test_fresh_login_token_authorizes(self, store: UserStore, watermark: RevocationWatermark, alice: str):
        token = login_user(store, "alice", "pw1")
        claims = authorize(_bearer(token), store, watermark)
        assert claims.username == "alice"
        assert claims.email == "a@x.com"
        assert claims.role == "guest"
        assert claims == decode_unverified(token)

    def test_missing_header(self, store, watermark):
        with pytest.raises(MalformedCredential):
            authorize(None, store, watermark)

    def test_unparsable_token(self, store, watermark):
        with pytest.raises(MalformedToken):
            authorize(_bearer("garbage"), store, watermark)

    def test_unknown_user(self, store, watermark):
        token = issue_token("ghost", "g@x.com", "guest", "s" * 64)
        with pytest.raises(UnknownUser):
            authorize(_bearer(token), store, watermark)

    def test_role_mismatch(self, store, watermark, alice):
        user = store.get_by_username("alice")
        token = issue_token("alice", "a@x.com", "admin", user.token_secret)
        with pytest.raises(RoleMismatch):
            authorize(_bearer(token), store, watermark)

    def test_older_than_watermark(self, store, watermark, alice):
        token = login_user(store, "alice", "pw1")
        watermark.advance(decode_unverified(token).iat + 1)
        with pytest.raises(TokenExpiredByWatermark):
            authorize(_bearer(token), store, watermark)

    def test_iat_equal_to_watermark_passes(self, store, watermark, alice):
        token = login_user(store, "alice", "pw1")
        watermark.advance(decode_unverified(token).iat)
        assert authorize(_bearer(token), store, watermark).username == "alice"

    def test_rotated_secret(self, store, watermark, alice):
        token = login_user(store, "alice", "pw1")
        revoke_by_user(store, "alice")
        with pytest.raises(InvalidSignature):
            authorize(_bearer(token), store, watermark)

    def test_past_one_day_lifetime(self, store, watermark, alice):
        user = store.get_by_username("alice")
        token = issue_token("alice", "a@x.com", "guest", user.token_secret, issued_at=now_millis() - 2 * 86400 * 1000)
        with pytest.raises(TokenExpired):
            authorize(_bearer(token), store, watermark)


class TestOrdering:
    def test_role_mismatch_reported_before_bad_signature(self, store, watermark, alice):
        token = issue_token("alice", "a@x.com", "admin", "wrong" * 13)
        with pytest.raises(RoleMismatch):
            authorize(_bearer(token), store, watermark)

    def test_watermark_reported_before_bad_signature(self, store, watermark, alice):
        token = issue_token("alice", "a@x.com", "guest", "wrong" * 13, issued_at=1000)
        watermark.advance(2000)
        with pytest.raises(TokenExpiredByWatermark):
            authorize(_bearer(token), store, watermark)

    def test_role_mismatch_reported_before_watermark(self, store, watermark, alice):
        user = store.get_by_username("alice")
        token = issue_token("alice", "a@x.com", "admin", user.token_secret, issued_at=1000)
        watermark.advance(2000)
        with pytest.raises(RoleMismatch):
            authorize(_bearer(token), store, watermark)

    def test_unknown_user_reported_before_watermark(self, store, watermark):
        token = issue_token("ghost", "g@x.com", "guest", "s" * 64, issued_at=1000)
        watermark.advance(2000)
        with pytest.raises(UnknownUser):
            authorize(_bearer(token), store, watermark)


class TestStoreFailure:
    def test_store_error_surfaces_as_store_unavailable(self, watermark):
        broken = MagicMock(spec=UserStore)
        broken.get_by_username.side_effect = StoreUnavailable(detail="get_by_username")
        token = issue_token("alice", "a@x.com", "guest", "s" * 64)
        with pytest.raises(StoreUnavailable):
            authorize(_bearer(token), broken, watermark)

    def test_real_driver_error_surfaces_as_store_unavailable(self, store, watermark, alice):
        token = login_user(store, "alice", "pw1")
        with store.engine.connect() as conn:
            conn.exec_driver_sql("DROP TABLE users")
            conn.commit()
        with pytest.raises(StoreUnavailable) as excinfo:
            authorize(_bearer(token), store, watermark)
        assert isinstance(excinfo.value.__cause__, OperationalError)
