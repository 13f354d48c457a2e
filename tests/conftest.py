"""
tests/conftest.py -- Shared test fixtures for the credential service.

This module provides:
  - store: AccountStore on a throwaway SQLite file
  - issuer: TokenIssuer with a fixed test secret
  - ephemeral_account(): factory for Account records with a chosen expiry
  - overwrite_column(): plant raw column values the store would never write
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - api_client: TestClient over the real app with isolated state

Design: file-backed SQLite (under tmp_path) rather than :memory:. Route
handlers and the expiry notifier run store calls in worker threads; a plain
:memory: DB is per-connection and would present a blank schema to each
thread, and shared-cache memory DBs raise "table is locked" instead of
waiting when a scan overlaps a write.

Environment must be set before any api/ import because api.main reads
settings at import time.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from datetime import datetime

# CRITICAL: set before importing api.main (get_settings() runs at import).
os.environ.setdefault("JWT_SECRET", "test-secret-0123456789abcdef0123456789abcdef")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
import sqlalchemy as sa
from fastapi.testclient import TestClient

from api.main import app
from auth.ephemeral import EphemeralAccountManager
from auth.models import Account
from auth.passwords import hash_password
from auth.store import AccountStore
from auth.tokens import TokenIssuer

TEST_SECRET = "unit-test-secret-fedcba9876543210fedcba9876543210"

# Scan interval for WebSocket tests -- short enough that a test sees a
# notification almost immediately.
TEST_SCAN_INTERVAL = 0.05


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path) -> Generator[AccountStore, None, None]:
    s = AccountStore(f"sqlite:///{tmp_path / 'accounts.db'}")
    yield s
    s.close()


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET)


@pytest.fixture(scope="session")
def _shared_hash():
    # Argon2id at 64 MiB is deliberately slow; seeded records can share one hash.
    return hash_password("seeded-password")


@pytest.fixture
def ephemeral_account(_shared_hash) -> Callable[..., Account]:
    """Return a factory building ephemeral Account records expiring at a given time."""

    def _make(username: str, expires_at: datetime, is_ephemeral: bool = True) -> Account:
        return Account(
            username=username,
            password_hash=_shared_hash.hash,
            salt=_shared_hash.salt,
            hash_format=_shared_hash.format,
            is_ephemeral=is_ephemeral,
            expires_at=expires_at,
        )

    return _make


@pytest.fixture
def overwrite_column() -> Callable[[AccountStore, str, str, str], None]:
    """Return a helper that writes a raw value into one column of a stored row.

    Bypasses the store's mapping, so tests can plant records the service
    would never write itself (unknown hash tags, unparseable timestamps).
    """

    def _set(store: AccountStore, username: str, column: str, value: str) -> None:
        users = sa.table("users", sa.column("username"), sa.column(column))
        with store.engine.begin() as conn:
            conn.execute(sa.update(users).where(users.c.username == username).values({column: value}))

    return _set


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AccountStore, issuer: TokenIssuer):
    """Return a lifespan that installs test collaborators on app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = store
        app.state.token_issuer = issuer
        app.state.ephemeral_manager = EphemeralAccountManager(store, issuer)
        app.state.expiry_scan_interval = TEST_SCAN_INTERVAL
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory) -> Generator[tuple[TestClient, AccountStore, TokenIssuer], None, None]:
    """Yield (client, store, issuer) over the real app with an isolated store.

    One client per test module; tests inside a module share the store, so
    they use distinct usernames.
    """
    db_path = tmp_path_factory.mktemp("api") / "accounts.db"
    store = AccountStore(f"sqlite:///{db_path}")
    issuer = TokenIssuer(TEST_SECRET)

    app.router.lifespan_context = _patch_lifespan(store, issuer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store, issuer

    store.close()
