"""
tests/test_cli.py -- Tests for the account administration CLI (main.py).

A UserStore on the same named in-memory database stays open for the whole
test so the database outlives the CLI's own store, which is closed on exit.
"""

from __future__ import annotations

import pytest

import main
from auth.models import Role
from auth.store import UserStore
from auth.tokens import verify_password


@pytest.fixture
def db(request):
    url = f"sqlite:///file:test_cli_{request.node.name}?mode=memory&cache=shared&uri=true"
    store = UserStore(url)
    yield url, store
    store.close()


def test_create_admin(db, capsys):
    url, store = db
    main.main(["--database-url", url, "create-admin", "--email", "Root@Example.com", "--password", "S3cretpass"])
    admin = store.find_by_email("root@example.com")
    assert admin is not None
    assert admin.role is Role.ADMIN
    assert verify_password("S3cretpass", admin.hashed_password)
    assert "Created admin" in capsys.readouterr().out


def test_create_admin_duplicate_exits(db):
    url, _ = db
    args = ["--database-url", url, "create-admin", "--email", "root@example.com", "--password", "S3cretpass"]
    main.main(args)
    with pytest.raises(SystemExit):
        main.main(args)


def test_set_role_and_active(db):
    url, store = db
    main.main(["--database-url", url, "create-admin", "--email", "root@example.com", "--password", "S3cretpass"])
    main.main(["--database-url", url, "create-admin", "--email", "bob@example.com", "--password", "S3cretpass"])

    main.main(["--database-url", url, "set-role", "--email", "bob@example.com", "--role", "USER"])
    assert store.find_by_email("bob@example.com").role is Role.USER

    main.main(["--database-url", url, "deactivate", "--email", "bob@example.com"])
    assert store.find_by_email("bob@example.com").is_active is False
    main.main(["--database-url", url, "activate", "--email", "bob@example.com"])
    assert store.find_by_email("bob@example.com").is_active is True


def test_refuses_to_remove_last_admin(db):
    url, store = db
    main.main(["--database-url", url, "create-admin", "--email", "root@example.com", "--password", "S3cretpass"])
    with pytest.raises(SystemExit):
        main.main(["--database-url", url, "deactivate", "--email", "root@example.com"])
    with pytest.raises(SystemExit):
        main.main(["--database-url", url, "set-role", "--email", "root@example.com", "--role", "USER"])
    assert store.find_by_email("root@example.com").is_active is True
    assert store.count_active_admins() == 1


def test_unknown_account_exits(db):
    url, _ = db
    with pytest.raises(SystemExit):
        main.main(["--database-url", url, "deactivate", "--email", "ghost@example.com"])


def test_create_admin_rejects_password_over_byte_limit(db):
    url, store = db
    password = "é" * 70 + "a1"
    with pytest.raises(SystemExit):
        main.main(["--database-url", url, "create-admin", "--email", "root@example.com", "--password", password])
    assert store.find_by_email("root@example.com") is None
