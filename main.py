#!/usr/bin/env python3
"""
Taskboard -- account administration CLI.

The REST API never lets anyone grant themselves a role. Creating the first
admin and changing roles are out-of-band operations done from a shell on
the server, against the same database the API uses.

Usage:
  python main.py create-admin --email admin@example.com --password 'Admin123!'
  python main.py create-admin --email admin@example.com --first-name Ada --last-name Admin
  python main.py set-role --email bob@example.com --role ADMIN
  python main.py deactivate --email bob@example.com
  python main.py activate --email bob@example.com
  python main.py list-users

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the Taskboard database (see core/config.py).
  DEBUG          Set to true to run without ACCESS_SECRET_KEY / REFRESH_SECRET_KEY.
"""

import argparse
import getpass
import sys

from api.models import MAX_PASSWORD_BYTES
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.errors import DuplicateEmail


def _prompt_password() -> str:
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return first


def _require_user(store: UserStore, email: str) -> User:
    user = store.find_by_email(email)
    if user is None:
        print(f"  [!] No account for '{email}'.")
        sys.exit(1)
    return user


def cmd_create_admin(store: UserStore, args: argparse.Namespace) -> None:
    password = args.password or _prompt_password()
    if len(password) < 8:
        print("  [!] Password must be at least 8 characters.")
        sys.exit(1)
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        sys.exit(1)
    try:
        user = store.create_user(
            User(
                email=args.email,
                hashed_password=hash_password(password),
                first_name=args.first_name,
                last_name=args.last_name,
                role=Role.ADMIN,
            )
        )
    except DuplicateEmail:
        print(f"  [!] An account for '{args.email}' already exists. Use set-role instead.")
        sys.exit(1)
    print(f"  Created admin {user.email} ({user.id})")


def cmd_set_role(store: UserStore, args: argparse.Namespace) -> None:
    user = _require_user(store, args.email)
    role = Role(args.role)
    if user.role is Role.ADMIN and role is not Role.ADMIN and store.count_active_admins() <= 1 and user.is_active:
        print("  [!] Refusing to demote the last active admin.")
        sys.exit(1)
    store.update_user(user.id, role=role)
    # Existing access tokens keep the old role claim until they expire; the
    # guard reads the role from the account row, so requests see it at once.
    print(f"  {user.email}: role {user.role.value} -> {role.value}")


def cmd_set_active(store: UserStore, args: argparse.Namespace, active: bool) -> None:
    user = _require_user(store, args.email)
    if not active and user.role is Role.ADMIN and user.is_active and store.count_active_admins() <= 1:
        print("  [!] Refusing to deactivate the last active admin.")
        sys.exit(1)
    store.update_user(user.id, is_active=active)
    print(f"  {user.email}: {'activated' if active else 'deactivated'}")


def cmd_list_users(store: UserStore, args: argparse.Namespace) -> None:
    users = store.list_users()
    if not users:
        print("  No accounts.")
        return
    for u in users:
        flag = "" if u.is_active else "  (inactive)"
        print(f"  {u.role.value:<5}  {u.email:<40} {u.last_login_at or 'never'}{flag}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskboard",
        description="Taskboard account administration.",
    )
    parser.add_argument("--database-url", help="Override DATABASE_URL for this invocation.")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-admin", help="Create an ADMIN account.")
    create.add_argument("--email", required=True)
    create.add_argument("--password", help="Prompted for when omitted.")
    create.add_argument("--first-name")
    create.add_argument("--last-name")

    role = sub.add_parser("set-role", help="Change an account's role.")
    role.add_argument("--email", required=True)
    role.add_argument("--role", required=True, choices=[r.value for r in Role])

    for name in ("activate", "deactivate"):
        p = sub.add_parser(name, help=f"{name.capitalize()} an account.")
        p.add_argument("--email", required=True)

    sub.add_parser("list-users", help="List all accounts.")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    store = UserStore(args.database_url)
    try:
        if args.command == "create-admin":
            cmd_create_admin(store, args)
        elif args.command == "set-role":
            cmd_set_role(store, args)
        elif args.command == "activate":
            cmd_set_active(store, args, active=True)
        elif args.command == "deactivate":
            cmd_set_active(store, args, active=False)
        elif args.command == "list-users":
            cmd_list_users(store, args)
    finally:
        store.close()


if __name__ == "__main__":
    main()
