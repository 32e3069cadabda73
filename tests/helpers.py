"""
tests/helpers.py -- Plain helpers shared by the Taskboard test modules.

conftest.py sets the environment before importing anything from the app;
pytest always loads it before any test module, so importing this module
from a test is safe.
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi.testclient import TestClient

from auth.models import User
from auth.store import UserStore
from auth.tokens import TokenService
from tasks.store import TaskStore

ADMIN_PASSWORD = "Adm1nPassw0rd"
USER_PASSWORD = "Passw0rd"


@dataclass
class ApiContext:
    """What the api_client fixture yields."""

    client: TestClient
    user_store: UserStore
    task_store: TaskStore
    tokens: TokenService
    admin: User
    admin_token: str


def memory_db_url(name: str) -> str:
    """Named shared-memory SQLite URL (see conftest.py for why not :memory:)."""
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


def make_stores(db_suffix: str) -> tuple[UserStore, TaskStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB names so test modules
                   don't share state.
    """
    user_store = UserStore(db_url=memory_db_url(f"test_users_{db_suffix}"))
    task_store = TaskStore(db_url=memory_db_url(f"test_tasks_{db_suffix}"))
    return user_store, task_store


def new_signing_keys() -> tuple[str, str]:
    """Return a fresh (access, refresh) key pair."""
    return secrets.token_hex(32), secrets.token_hex(32)


def make_token_service(
    user_store: UserStore,
    keys: Optional[tuple[str, str]] = None,
    **kwargs,
) -> TokenService:
    """TokenService independent of Settings. Fresh random keys unless given."""
    access_key, refresh_key = keys or new_signing_keys()
    return TokenService(
        access_secret_key=access_key,
        refresh_secret_key=refresh_key,
        user_store=user_store,
        **kwargs,
    )


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
