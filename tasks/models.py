"""
tasks/models.py -- Domain dataclasses for task records.

These are pure data containers with zero logic. Access decisions live in
tasks/policy.py; persistence lives in tasks/store.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Status(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SortField(str, Enum):
    title = "title"
    status = "status"
    priority = "priority"
    due_date = "due_date"
    created_at = "created_at"


@dataclass
class Task:
    """A single task owned by exactly one user.

    owner_id is fixed at creation; the store refuses to change it.
    id is None before the record is written to the database.
    """

    title: str
    owner_id: str
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    status: Status = Status.PENDING
    due_date: Optional[str] = None  # ISO 8601
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, refreshed on every update


@dataclass(frozen=True)
class TaskFilter:
    """Query constraints for TaskStore.find().

    owner_id is how list scoping reaches SQL: tasks/policy.scope_filter()
    fills it in for non-admin actors before the query runs.
    """

    owner_id: Optional[str] = None
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    search: Optional[str] = None  # case-insensitive match on title or description


@dataclass(frozen=True)
class TaskOrder:
    field: SortField = SortField.created_at
    descending: bool = True
