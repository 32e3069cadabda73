"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in tasks/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Closed set of account roles. Stored and signed as the enum value."""

    USER = "USER"
    ADMIN = "ADMIN"


@dataclass
class User:
    """A registered account.

    email is always stored lower-case -- the store normalizes on write and
    lookup, which is what makes uniqueness case-insensitive.

    id is None before the record is written to the database.
    """

    email: str
    hashed_password: str
    role: Role = Role.USER
    first_name: str | None = None
    last_name: str | None = None
    id: str | None = None
    is_active: bool = True
    created_at: str = ""  # ISO 8601, set by store on insert
    last_login_at: str | None = None  # ISO 8601, stamped on each successful login


@dataclass(frozen=True)
class Identity:
    """The acting identity attached to a request after authentication.

    Carries only what downstream handlers and the task policy need -- never
    the password hash.
    """

    id: str
    email: str
    role: Role
    first_name: str | None = None
    last_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            first_name=user.first_name,
            last_name=user.last_name,
        )
