"""
API request and response models for Taskboard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
tasks/models.py, which own the internal domain representation. Route
handlers map between the two.

Closed enums (role, priority, status, sort field) are validated here, before
a request ever reaches the task policy or the store.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Identity, Role, User
from tasks.models import Priority, Status, Task

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# bcrypt only looks at the first 72 bytes of a password (bcrypt>=5 refuses
# longer input outright). Non-ASCII characters take several bytes each.
MAX_PASSWORD_BYTES = 72

_HAS_DIGIT = re.compile(r"\d")
_HAS_LETTER = re.compile(r"[A-Za-z]")


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes (UTF-8).")
    return value


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=MAX_PASSWORD_BYTES)
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        """Require at least one letter and one digit, within bcrypt's byte limit."""
        _check_password_bytes(value)
        if not _HAS_DIGIT.search(value):
            raise ValueError("Password must contain at least one number.")
        if not _HAS_LETTER.search(value):
            raise ValueError("Password must contain at least one letter.")
        return value


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh."""

    refresh_token: str = Field(min_length=1, max_length=4096)


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/auth/users/{user_id}. Admin only.

    Only the active flag is exposed. Role changes are an out-of-band
    administrative action (see main.py set-role).
    """

    is_active: bool


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an account. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    role: Role
    is_active: bool
    created_at: str
    last_login_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at,
            last_login_at=user.last_login_at,
        )


class ProfileResponse(UserResponse):
    """Response for GET /api/v1/auth/profile."""

    task_count: int


class TokenPairResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthResponse(TokenPairResponse):
    """Response for POST /api/v1/auth/register and /login."""

    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Tasks -- request models
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    """Request body for POST /api/v1/tasks.

    owner_id is accepted so a client sending one gets a normal response, but
    it is never honoured -- the owner is always the caller.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    priority: Priority = Priority.MEDIUM
    due_date: Optional[datetime] = None
    owner_id: Optional[str] = Field(default=None, max_length=64)


class TaskUpdate(BaseModel):
    """Request body for PUT /api/v1/tasks/{task_id}.

    Partial update: only fields present in the body change. An explicit
    null clears description or due_date. There is no owner field.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    due_date: Optional[datetime] = None

    @field_validator("title", "priority", "status")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null.")
        return value


# ---------------------------------------------------------------------------
# Tasks -- response models
# ---------------------------------------------------------------------------


class TaskOwner(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]


class TaskResponse(BaseModel):
    """A single task with its owner summary embedded."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: Optional[str]
    priority: Priority
    status: Status
    due_date: Optional[str]
    owner_id: str
    owner: Optional[TaskOwner]
    created_at: str
    updated_at: str

    @classmethod
    def from_task(cls, task: Task, owner: Optional[User | Identity] = None) -> "TaskResponse":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            priority=task.priority,
            status=task.status,
            due_date=task.due_date,
            owner_id=task.owner_id,
            owner=(
                TaskOwner(
                    id=owner.id,
                    email=owner.email,
                    first_name=owner.first_name,
                    last_name=owner.last_name,
                )
                if owner is not None
                else None
            ),
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    limit: int
    total: int
    total_pages: int


class TaskListResponse(BaseModel):
    """Response for GET /api/v1/tasks. total counts the caller's scope only."""

    model_config = ConfigDict(frozen=True)

    tasks: list[TaskResponse]
    pagination: Pagination


class TaskStatsResponse(BaseModel):
    """Response for GET /api/v1/tasks/stats. Admin only."""

    model_config = ConfigDict(frozen=True)

    total_tasks: int
    total_users: int
    by_status: dict[str, int]
    by_priority: dict[str, int]


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str
    version: str
    components: dict[str, str]
