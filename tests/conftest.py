"""
tests/conftest.py -- Shared test fixtures for LeaseDesk tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for accounts + vault
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus a seeded world (two orgs, three accounts,
    one session token per account)
  - account_store / vault_store / sessions / leases: unit-test objects on a
    private in-memory database

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the TestClient because it runs route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit-test fixtures run in one thread, so :memory: is enough.

DEBUG, ALLOWED_HOSTS and the rate limits must be set before any project
import: get_settings() is cached on first call. ALLOWED_HOSTS adds
"testserver", the Host header TestClient sends, which production does not
accept. Rate-limit tests lower a limit by patching the cached Settings.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any api/auth/core import (see module docstring).
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("SIGNUP_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.sessions import SessionAuthority
from auth.store import AccountStore
from auth.tokens import hash_password
from vault.leases import LeaseManager
from vault.models import TestUser
from vault.store import TestUserStore

PASSWORD = "correct-horse-battery"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[AccountStore, TestUserStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. the test module name).
    """
    accounts_url = f"sqlite:///file:test_accounts_{db_suffix}?mode=memory&cache=shared&uri=true"
    vault_url = f"sqlite:///file:test_vault_{db_suffix}?mode=memory&cache=shared&uri=true"
    return AccountStore(db_url=accounts_url), TestUserStore(db_url=vault_url)


def _patch_lifespan(user_store: AccountStore, vault: TestUserStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.vault = vault
        app.state.sessions = SessionAuthority(user_store)
        app.state.leases = LeaseManager(vault)
        yield

    return test_lifespan


def make_account(store: AccountStore, email: str, organization_id: int, password: str = PASSWORD) -> User:
    user = User(email=email, organization_id=organization_id, hashed_password=hash_password(password))
    user.id = store.create_user(user)
    return user


def make_record(vault: TestUserStore, organization_id: int, first_name: str = "Test") -> TestUser:
    record_id = vault.create_test_user(
        TestUser(
            first_name=first_name,
            last_name="User",
            email=f"{first_name.lower()}@staging.example",
            password="staging-pass",
            organization_id=organization_id,
        )
    )
    return vault.get_test_user(record_id)


# ---------------------------------------------------------------------------
# Module-scoped API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@dataclass
class World:
    """Seed data shared by the API tests of one module."""

    org_a: int
    org_b: int
    user1: User  # org A
    user2: User  # org A
    user3: User  # org B
    tokens: dict[str, str]  # email -> raw session token

    def headers(self, user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens[user.email]}"}


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, World], None, None]:
    """Yield (client, world) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores. Tokens
    are issued directly through SessionAuthority so tests that are not about
    login don't depend on it.
    """
    user_store, vault = _make_test_stores(request.module.__name__.replace(".", "_"))

    org_a = user_store.create_organization("Acme QA")
    org_b = user_store.create_organization("Globex QA")
    user1 = make_account(user_store, "user1@acme.io", org_a)
    user2 = make_account(user_store, "user2@acme.io", org_a)
    user3 = make_account(user_store, "user3@globex.io", org_b)

    issuer = SessionAuthority(user_store)
    tokens = {u.email: issuer.create_session(u.id, u.organization_id) for u in (user1, user2, user3)}
    world = World(org_a=org_a, org_b=org_b, user1=user1, user2=user2, user3=user3, tokens=tokens)

    app.router.lifespan_context = _patch_lifespan(user_store, vault)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, world

    vault.close()
    user_store.close()


# ---------------------------------------------------------------------------
# Function-scoped unit fixtures -- a fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def account_store() -> Generator[AccountStore, None, None]:
    store = AccountStore(db_url="sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def vault_store() -> Generator[TestUserStore, None, None]:
    store = TestUserStore(db_url="sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def sessions(account_store: AccountStore) -> SessionAuthority:
    return SessionAuthority(account_store)


@pytest.fixture
def leases(vault_store: TestUserStore) -> LeaseManager:
    return LeaseManager(vault_store)
