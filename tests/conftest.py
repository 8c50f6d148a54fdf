"""
tests/conftest.py -- Shared test fixtures for task tracker integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + tracker
  - _patch_lifespan(): wires test stores and a TokenService into app.state
  - client: module-scoped TestClient running the real app
  - make_account: signs up and logs in a fresh principal, returns an Account
  - test_secret: the signing secret the test TokenService uses

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process.

Environment variables must be set before any core/auth import:
  DEBUG=true           -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4      -- minimum cost keeps signup/login fast
  LOGIN_RATE_LIMIT     -- high enough that the suite never trips it
  ALLOWED_HOSTS        -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any core/auth import -- get_settings() is cached on
# first call and DUMMY_HASH is computed at import time.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "10000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from auth.tokens import TokenService
from tracker.store import TrackerStore

TEST_SECRET = "test-secret-key-" + "x" * 32
TEST_PASSWORD = "Secret#123"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, TrackerStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (the module name is used).
    """
    users_url = f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true"
    tracker_url = f"sqlite:///file:test_tracker_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(users_url), TrackerStore(tracker_url)


def _patch_lifespan(user_store: UserStore, tracker: TrackerStore, token_service: TokenService):
    """Return an async context manager that replaces the real lifespan.

    Route handlers then see the isolated test stores and a TokenService with a
    known secret instead of the ones built from Settings.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.tracker = tracker
        app.state.token_service = token_service
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@dataclass
class Account:
    """A signed-up and logged-in principal, as seen by a test."""

    id: str
    name: str
    email: str
    password: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app, one per test module.

    The stores live for the whole module, so tests that need a clean slate
    create their own accounts through make_account().
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, tracker = _make_test_stores(suffix)
    token_service = TokenService(TEST_SECRET, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, tracker, token_service)

    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client

    tracker.close()
    user_store.close()


@pytest.fixture
def test_secret() -> str:
    return TEST_SECRET


@pytest.fixture
def make_account(client: TestClient) -> Callable[..., Account]:
    """Return a factory that signs up and logs in a new principal.

    Each call uses a unique email so tests sharing a module-scoped database
    never collide. The cookie set by login is cleared afterwards: tests choose
    explicitly whether a request carries the header, the cookie, or neither.
    """

    def _make(name: str = "Ann") -> Account:
        email = f"{name.lower()}-{uuid.uuid4().hex[:8]}@x.com"
        resp = client.post("/auth/signup", json={"name": name, "email": email, "password": TEST_PASSWORD})
        assert resp.status_code == 201, f"signup failed: {resp.text}"
        resp = client.post("/auth/login", json={"email": email, "password": TEST_PASSWORD})
        assert resp.status_code == 200, f"login failed: {resp.text}"
        client.cookies.clear()
        data = resp.json()
        return Account(
            id=data["user"]["id"],
            name=name,
            email=email,
            password=TEST_PASSWORD,
            token=data["token"],
        )

    return _make
