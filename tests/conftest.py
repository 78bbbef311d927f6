"""
tests/conftest.py -- Shared test fixtures for Surfer tests.

This module provides:
  - FakeClock / clock: a settable clock for the time-dependent components
  - _make_test_store(): isolated in-memory account DB
  - _patch_lifespan(): wires test components into app.state, bypassing real startup
  - app_ctx: the wired components plus a TestClient over the real app
  - admin_token / admin_headers: a bearer credential for an approved admin

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

DEBUG and RATE_LIMIT_ENABLED must be set before any api/auth/core import so
get_settings() falls back to the dev JWT secret and slowapi is disabled.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# CRITICAL: set before any app import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import SingletonThreadPool

from api.main import app
from auth.lifecycle import AccountService
from auth.models import ROLE_ADMIN, STATUS_APPROVED, Account
from auth.oauth import IdentityExchanger
from auth.state import StateTracker
from auth.store import AccountStore
from auth.tokens import CredentialService
from core.config import Settings, get_settings

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock whose current instant only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> AccountStore:
    """Create an isolated named shared-memory SQLite account store."""
    return AccountStore(
        f"sqlite:///file:test_accounts_{db_suffix}?mode=memory&cache=shared&uri=true",
        poolclass=SingletonThreadPool,
    )


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = _make_test_store(uuid.uuid4().hex)
    yield s
    s.close()


@pytest.fixture
def credentials() -> CredentialService:
    return CredentialService(secret=get_settings().jwt_secret)


@pytest.fixture
def accounts(store: AccountStore, credentials: CredentialService) -> AccountService:
    return AccountService(store, credentials)


def create_admin(store: AccountStore, email: str = "admin@example.com") -> Account:
    """Insert an approved admin directly, as scripts/bootstrap_admin.py would leave it."""
    account_id = store.create_account(
        Account(google_id=f"admin-{email}", email=email, name="Admin", role=ROLE_ADMIN, status=STATUS_APPROVED)
    )
    return store.get_by_id(account_id)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@dataclass
class AppContext:
    client: TestClient
    settings: Settings
    store: AccountStore
    credentials: CredentialService
    tracker: StateTracker
    exchanger: MagicMock
    accounts: AccountService


def _fake_exchanger() -> MagicMock:
    """IdentityExchanger stand-in. No test may reach a real provider."""
    exchanger = MagicMock(spec=IdentityExchanger)
    exchanger.build_authorization_url.side_effect = (
        lambda token: f"https://accounts.google.com/o/oauth2/auth?state={token.value}"
    )
    return exchanger


def _patch_lifespan(ctx: dict):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test components into app.state so TestClient routes
    see an isolated DB and the fake exchanger. The reaper is started and
    stopped exactly as in production.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = ctx["settings"]
        app.state.account_store = ctx["store"]
        app.state.credentials = ctx["credentials"]
        app.state.state_tracker = ctx["tracker"]
        app.state.exchanger = ctx["exchanger"]
        app.state.accounts = ctx["accounts"]
        ctx["tracker"].start()
        yield
        ctx["tracker"].stop()

    return test_lifespan


@pytest.fixture
def app_ctx() -> Generator[AppContext, None, None]:
    """Yield an AppContext whose client hits the real routes and gates."""
    settings = get_settings()
    store = _make_test_store(uuid.uuid4().hex)
    credentials = CredentialService.from_settings(settings)
    ctx = {
        "settings": settings,
        "store": store,
        "credentials": credentials,
        "tracker": StateTracker(),
        "exchanger": _fake_exchanger(),
        "accounts": AccountService(store, credentials),
    }
    app.router.lifespan_context = _patch_lifespan(ctx)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield AppContext(client=client, **ctx)

    store.close()


@pytest.fixture
def admin_token(app_ctx: AppContext) -> str:
    admin = create_admin(app_ctx.store)
    return app_ctx.credentials.issue(admin.id, admin.email, admin.role)


@pytest.fixture
def admin_headers(admin_token: str) -> dict:
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def make_admin():
    """Factory fixture: make_admin(store, email=...) -> approved admin Account."""
    return create_admin
