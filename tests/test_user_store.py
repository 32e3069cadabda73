"""
tests/test_user_store.py -- Tests for auth/store.py (UserStore).

Covers:
  - create_user / find_by_email / find_by_id round trip
  - case-insensitive email uniqueness (DuplicateEmail from the UNIQUE constraint)
  - update_last_login, update_user whitelist, get_many, counts
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from auth.store import UserStore, normalize_email
from core.errors import DuplicateEmail


@pytest.fixture
def store(request):
    s = UserStore(db_url=f"sqlite:///file:test_user_store_{request.node.name}?mode=memory&cache=shared&uri=true")
    yield s
    s.close()


def _user(email: str, role: Role = Role.USER) -> User:
    return User(email=email, hashed_password="$2b$04$notarealhashbutnotchecked", role=role)


def test_create_and_find(store: UserStore) -> None:
    created = store.create_user(_user("Alice@Example.com"))
    assert created.id, "Store must assign an id"
    assert created.email == "alice@example.com", "Email must be stored lower-case"
    assert created.role is Role.USER
    assert created.is_active is True
    assert created.created_at, "created_at must be stamped on insert"
    assert created.last_login_at is None

    assert store.find_by_id(created.id) == created
    assert store.find_by_email("ALICE@example.COM") == created


def test_find_missing_returns_none(store: UserStore) -> None:
    assert store.find_by_email("nobody@example.com") is None
    assert store.find_by_id("00000000-0000-0000-0000-000000000000") is None


def test_duplicate_email_is_case_insensitive(store: UserStore) -> None:
    store.create_user(_user("bob@example.com"))
    with pytest.raises(DuplicateEmail):
        store.create_user(_user("BOB@example.com"))
    assert store.count_users() == 1


def test_other_integrity_errors_are_not_duplicate_email(store: UserStore) -> None:
    """Only the email UNIQUE constraint maps to DuplicateEmail."""
    with pytest.raises(IntegrityError) as excinfo:
        store.create_user(User(email="nohash@example.com", hashed_password=None))
    assert not isinstance(excinfo.value, DuplicateEmail)
    assert store.count_users() == 0


def test_update_last_login(store: UserStore) -> None:
    user = store.create_user(_user("carol@example.com"))
    store.update_last_login(user.id, "2026-01-01T00:00:00+00:00")
    assert store.find_by_id(user.id).last_login_at == "2026-01-01T00:00:00+00:00"
    store.update_last_login(user.id)
    assert store.find_by_id(user.id).last_login_at != "2026-01-01T00:00:00+00:00"


def test_update_user_changes_role_and_active(store: UserStore) -> None:
    user = store.create_user(_user("dave@example.com"))
    assert store.update_user(user.id, role=Role.ADMIN, is_active=False) is True
    reloaded = store.find_by_id(user.id)
    assert reloaded.role is Role.ADMIN
    assert reloaded.is_active is False


def test_update_user_unknown_id(store: UserStore) -> None:
    assert store.update_user("missing", is_active=False) is False


def test_update_user_rejects_immutable_fields(store: UserStore) -> None:
    user = store.create_user(_user("erin@example.com"))
    with pytest.raises(ValueError):
        store.update_user(user.id, email="other@example.com")


def test_get_many_and_counts(store: UserStore) -> None:
    a = store.create_user(_user("a@example.com"))
    b = store.create_user(_user("b@example.com", role=Role.ADMIN))
    c = store.create_user(_user("c@example.com", role=Role.ADMIN))
    store.update_user(c.id, is_active=False)

    found = store.get_many({a.id, b.id, "missing"})
    assert set(found) == {a.id, b.id}
    assert store.get_many(set()) == {}

    assert store.count_users() == 3
    assert store.count_active_admins() == 1
    assert [u.email for u in store.list_users()] == ["a@example.com", "b@example.com", "c@example.com"]


def test_ping(store: UserStore) -> None:
    assert store.ping() is True


def test_normalize_email() -> None:
    assert normalize_email("  Mixed@Case.COM ") == "mixed@case.com"
