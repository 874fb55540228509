"""
tests/conftest.py -- Shared test fixtures for Gatehouse tests.

This module provides:
  - store: a fresh UserStore on a private in-memory DB (unit tests)
  - watermark: an in-memory RevocationWatermark bound to that store
  - client: TestClient wired to an isolated store through a patched lifespan
  - register_and_login: helper fixture returning Authorization headers

Design: the HTTP fixture uses named shared-memory SQLite URIs (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Each test gets its own uniquely named DB.

Environment variables must be set before any gatehouse import so the
get_settings() singleton picks them up: bcrypt at its minimum cost keeps the
suite fast, and the login rate limit is lifted so the many logins across the
suite never hit 429.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.accounts import register_user
from auth.revocation import RevocationWatermark
from auth.store import UserStore

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _shared_memory_url() -> str:
    return f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _patch_lifespan(user_store: UserStore, watermark: RevocationWatermark):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store and watermark into app.state so routes never open
    the on-disk database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.watermark = watermark
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    """UserStore on a private in-memory database."""
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def watermark(store: UserStore) -> RevocationWatermark:
    return RevocationWatermark(store=store)


@pytest.fixture
def alice(store: UserStore) -> str:
    """Register alice / a@x.com / pw1 and return the username."""
    register_user(store, "alice", "a@x.com", "pw1")
    return "alice"


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def http_store() -> Generator[UserStore, None, None]:
    s = UserStore(db_url=_shared_memory_url())
    yield s
    s.close()


@pytest.fixture
def client(http_store: UserStore) -> Generator[TestClient, None, None]:
    """TestClient against the real app with an isolated store and watermark."""
    app.router.lifespan_context = _patch_lifespan(http_store, RevocationWatermark(store=http_store))
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture
def register_and_login(client: TestClient):
    """Return a helper that registers a user over HTTP and yields their Authorization headers."""

    def _register_and_login(username: str = "alice", email: str = "a@x.com", password: str = "pw1") -> dict:
        resp = client.post("/auth/register", json={"username": username, "email": email, "password": password})
        assert resp.status_code == 200
        resp = client.post("/auth/login", json={"username": username, "email": email, "password": password})
        assert resp.status_code == 200
        return {"Authorization": f"Bearer {resp.text}"}

    return _register_and_login
