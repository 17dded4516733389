"""
tests/conftest.py -- Shared test fixtures for UserGate.

This module provides:
  - FakeRedis: an in-process stand-in for the redis client surface SessionStore
    uses (get / set with ex / pipeline / ping), with a manual clock so TTL
    expiry can be tested without sleeping
  - account_store / session_store / service: isolated unit-level fixtures
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Environment variables must be set before any api/ or core/ import so
get_settings() picks them up: a fixed JWT secret, the minimum bcrypt cost
(keeps the suite fast), a relaxed login rate limit, and the TestClient host.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any core/api import.
TEST_SECRET = "test-secret-key-0123456789abcdef-0123456789"
os.environ.setdefault("JWT_SECRET_KEY", TEST_SECRET)
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver"]')

import pytest
from fastapi.testclient import TestClient

from auth.service import AuthService
from auth.store import AccountStore
from cache.store import SessionStore

TEST_ROUNDS = 4
TEST_ISSUER = "usergate"


# ---------------------------------------------------------------------------
# Redis double
# ---------------------------------------------------------------------------


class FakeRedis:
    """Dict-backed redis client double with an explicit clock for TTLs."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, float | None]] = {}
        self.clock = 0.0

    def advance(self, seconds: float) -> None:
        self.clock += seconds

    def set(self, name: str, value: str, ex: int | None = None) -> bool:
        expires_at = self.clock + ex if ex else None
        self._data[name] = (value, expires_at)
        return True

    def get(self, name: str) -> str | None:
        item = self._data.get(name)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self.clock >= expires_at:
            del self._data[name]
            return None
        return value

    def ttl(self, name: str) -> int:
        if self.get(name) is None:
            return -2
        expires_at = self._data[name][1]
        return -1 if expires_at is None else int(expires_at - self.clock)

    def keys(self) -> list[str]:
        return [k for k in list(self._data) if self.get(k) is not None]

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self)

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


class FakePipeline:
    def __init__(self, client: FakeRedis) -> None:
        self._client = client
        self._queued: list[tuple[str, str, int | None]] = []

    def __enter__(self) -> "FakePipeline":
        return self

    def __exit__(self, *exc) -> None:
        self._queued.clear()

    def set(self, name: str, value: str, ex: int | None = None) -> "FakePipeline":
        self._queued.append((name, value, ex))
        return self

    def execute(self) -> list[bool]:
        return [self._client.set(name, value, ex=ex) for name, value, ex in self._queued]


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def account_store() -> Generator[AccountStore, None, None]:
    store = AccountStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def session_store(fake_redis: FakeRedis) -> SessionStore:
    return SessionStore(fake_redis)


@pytest.fixture
def service(account_store: AccountStore, session_store: SessionStore) -> AuthService:
    return AuthService(
        account_store,
        session_store,
        secret=TEST_SECRET,
        issuer=TEST_ISSUER,
        bcrypt_rounds=TEST_ROUNDS,
    )


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(account_store: AccountStore, session_store: SessionStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the test stores and a service built over them into app.state so
    routes hit real handlers without a real database file or redis server.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = account_store
        app.state.session_store = session_store
        app.state.auth_service = AuthService(
            account_store,
            session_store,
            secret=TEST_SECRET,
            issuer=TEST_ISSUER,
            bcrypt_rounds=TEST_ROUNDS,
        )
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, FakeRedis], None, None]:
    """Yield (client, fake_redis) for API integration tests.

    raise_server_exceptions=False so tests can assert on the 500 envelope the
    generic handler produces for infrastructure failures.
    """
    from api.main import app

    account_store = AccountStore("sqlite:///file:test_accounts_api?mode=memory&cache=shared&uri=true")
    redis_double = FakeRedis()
    session_store = SessionStore(redis_double)

    app.router.lifespan_context = _patch_lifespan(account_store, session_store)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client, redis_double

    account_store.close()
