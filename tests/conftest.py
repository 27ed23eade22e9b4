"""
tests/conftest.py -- Shared test fixtures for the session service tests.

This module provides:
  - _memory_db_url(): a fresh named shared-memory SQLite URI
  - engine / user_store / refresh_store: isolated stores per test
  - codec / verifier / service: the auth core wired like api.main.init_state()
  - registered_user: a@x.com / secret123 already in the user store
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

Environment must be set before any app import: DEBUG so get_settings() can
auto-generate SECRET_KEY, a low bcrypt cost so the suite stays fast, and
rate limiting off because the suite logs in far more than 10 times a minute.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import timedelta

# CRITICAL: Set before any api/ or core/ import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app, init_state
from auth.models import User
from auth.passwords import PasswordVerifier, hash_password
from auth.service import SessionService
from auth.store import RefreshTokenStore, UserStore, create_store_engine
from auth.tokens import TokenCodec
from core.config import get_settings

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
TEST_ROUNDS = 4
TEST_EMAIL = "a@x.com"
TEST_PASSWORD = "secret123"  # noqa: S105 # nosec B105 -- test fixture


def _memory_db_url() -> str:
    """Return a unique named shared-memory SQLite URI."""
    return f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Core fixtures -- one isolated database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = create_store_engine(_memory_db_url())
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def refresh_store(engine: Engine) -> RefreshTokenStore:
    return RefreshTokenStore(engine)


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(TEST_SECRET)


@pytest.fixture(scope="session")
def verifier() -> PasswordVerifier:
    return PasswordVerifier(rounds=TEST_ROUNDS)


@pytest.fixture
def service(
    user_store: UserStore,
    refresh_store: RefreshTokenStore,
    codec: TokenCodec,
    verifier: PasswordVerifier,
) -> SessionService:
    return SessionService(
        users=user_store,
        refresh_tokens=refresh_store,
        codec=codec,
        verifier=verifier,
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7),
    )


@pytest.fixture
def registered_user(user_store: UserStore) -> User:
    """a@x.com / secret123, already stored."""
    user_id = user_store.create_user(
        User(email=TEST_EMAIL, password_hash=hash_password(TEST_PASSWORD, rounds=TEST_ROUNDS))
    )
    return user_store.get_by_id(user_id)


# ---------------------------------------------------------------------------
# HTTP fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(engine: Engine):
    """Return a lifespan that wires the test engine instead of DATABASE_URL."""

    @asynccontextmanager
    async def test_lifespan(app):
        init_state(app, get_settings(), engine)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, user_store) with a@x.com / secret123 registered.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers against an isolated in-memory database.
    """
    eng = create_store_engine(_memory_db_url())
    users = UserStore(eng)
    users.create_user(User(email=TEST_EMAIL, password_hash=hash_password(TEST_PASSWORD, rounds=TEST_ROUNDS)))

    app.router.lifespan_context = _patch_lifespan(eng)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, users

    eng.dispose()
