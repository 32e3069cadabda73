"""
tests/conftest.py -- Shared test fixtures for Taskboard tests.

This module provides:
  - _patch_lifespan(): wires test stores and a TokenService into app.state
  - api_client: TestClient plus a pre-created admin and its access token
  - register_user: factory that registers a fresh USER through the API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any core/auth/api import:
get_settings() is cached on first use, and api.limiter reads the rate limits
at import time.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set these before any auth/core import. DEBUG lets get_settings()
# auto-generate signing keys; the rest keep tests fast and unthrottled.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')
os.environ.setdefault("DEFAULT_RATE_LIMIT", "10000/minute")
os.environ.setdefault("LOGIN_RATE_LIMIT", "10000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "10000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import TokenService, hash_password
from helpers import ADMIN_PASSWORD, USER_PASSWORD, ApiContext, make_stores, make_token_service, unique_email
from tasks.store import TaskStore


def _patch_lifespan(user_store: UserStore, task_store: TaskStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.task_store = task_store
        app.state.tokens = tokens
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores. An
    ADMIN account is created directly in the store (the API never grants
    roles) and an access token is issued for it.
    """
    user_store, task_store = make_stores(request.module.__name__.rsplit(".", 1)[-1])
    tokens = make_token_service(user_store)

    admin = user_store.create_user(
        User(
            email=unique_email("admin"),
            hashed_password=hash_password(ADMIN_PASSWORD),
            first_name="Ada",
            last_name="Admin",
            role=Role.ADMIN,
        )
    )
    admin_token = tokens.issue(admin.id, admin.role).access_token

    app.router.lifespan_context = _patch_lifespan(user_store, task_store, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            user_store=user_store,
            task_store=task_store,
            tokens=tokens,
            admin=admin,
            admin_token=admin_token,
        )

    task_store.close()
    user_store.close()


@pytest.fixture
def register_user(api_client: ApiContext) -> Callable[..., dict]:
    """Factory: register a fresh USER through POST /auth/register.

    Returns the decoded response body (user, access_token, refresh_token...).
    """

    def _register(prefix: str = "user", password: str = USER_PASSWORD, **extra) -> dict:
        body = {"email": unique_email(prefix), "password": password, **extra}
        resp = api_client.client.post("/api/v1/auth/register", json=body)
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        return resp.json()

    return _register
