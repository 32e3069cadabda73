"""
tasks/policy.py -- Task access policy.

Pure decision functions: no I/O, no store access, no FastAPI. Route handlers
load what they need, ask the policy, then touch the store.

Rules, evaluated in order:
  1. LIST   -- always allowed. Admins see every task; everyone else is scoped
               to their own. The scope is a query filter (scope_filter()),
               applied in SQL before the query runs, never a post-fetch filter.
  2. CREATE -- always allowed for an authenticated actor. The owner is forced
               to the actor (resolve_owner()), whatever the caller asked for.
  3. READ / UPDATE / DELETE on one task:
               missing task        -> Deny(NOT_FOUND)
               admin or owner      -> Allow
               anyone else         -> Deny(FORBIDDEN)
               Existence is checked before ownership. A non-owner learns that
               a task id exists (403 instead of 404) but never its contents.
  4. STATS  -- admins only, else Deny(ADMIN_REQUIRED).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from auth.models import Identity
from core.errors import AccessError, AdminRequired, Forbidden, NotFound
from tasks.models import Task, TaskFilter

logger = logging.getLogger("taskboard.tasks")


class Operation(str, Enum):
    LIST = "list"
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    STATS = "stats"


class Denial(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    ADMIN_REQUIRED = "admin_required"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[Denial] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(allowed=True)

_SINGLE_TASK_OPS = frozenset({Operation.READ, Operation.UPDATE, Operation.DELETE})

_DENIAL_ERRORS: dict[Denial, type[AccessError]] = {
    Denial.NOT_FOUND: NotFound,
    Denial.FORBIDDEN: Forbidden,
    Denial.ADMIN_REQUIRED: AdminRequired,
}

_DENIAL_MESSAGES: dict[tuple[Denial, Operation], str] = {
    (Denial.NOT_FOUND, Operation.READ): "Task not found.",
    (Denial.NOT_FOUND, Operation.UPDATE): "Task not found.",
    (Denial.NOT_FOUND, Operation.DELETE): "Task not found.",
    (Denial.FORBIDDEN, Operation.READ): "You do not have permission to view this task.",
    (Denial.FORBIDDEN, Operation.UPDATE): "You do not have permission to update this task.",
    (Denial.FORBIDDEN, Operation.DELETE): "You do not have permission to delete this task.",
}


def decide(actor: Identity, operation: Operation, task: Optional[Task] = None) -> Decision:
    """Return Allow or Deny(reason) for actor performing operation on task.

    For single-task operations, pass the task as loaded from the store --
    None means the lookup found nothing.
    """
    operation = Operation(operation)

    if operation in (Operation.LIST, Operation.CREATE):
        return ALLOW

    if operation in _SINGLE_TASK_OPS:
        if task is None:
            return Decision(allowed=False, reason=Denial.NOT_FOUND)
        if actor.is_admin or task.owner_id == actor.id:
            return ALLOW
        return Decision(allowed=False, reason=Denial.FORBIDDEN)

    if operation is Operation.STATS:
        return ALLOW if actor.is_admin else Decision(allowed=False, reason=Denial.ADMIN_REQUIRED)

    raise ValueError(f"Unhandled operation {operation!r}")


def enforce(actor: Identity, operation: Operation, task: Optional[Task] = None) -> None:
    """Like decide(), but raise the matching AccessError on denial."""
    decision = decide(actor, operation, task)
    if decision.allowed:
        return
    logger.warning(
        "Denied %s on task %s for %s (%s)",
        Operation(operation).value,
        task.id if task is not None else "-",
        actor.id,
        decision.reason.value,
    )
    error_cls = _DENIAL_ERRORS[decision.reason]
    raise error_cls(_DENIAL_MESSAGES.get((decision.reason, Operation(operation))))


def scope_filter(actor: Identity, base: TaskFilter = TaskFilter()) -> TaskFilter:
    """Constrain a listing filter to what actor may enumerate.

    Admins get the filter unchanged. Everyone else gets owner_id pinned to
    their own id, overriding anything already in the filter.
    """
    if actor.is_admin:
        return base
    return replace(base, owner_id=actor.id)


def resolve_owner(actor: Identity, requested_owner_id: Optional[str] = None) -> str:
    """Return the owner for a task actor is creating -- always actor.id."""
    if requested_owner_id is not None and requested_owner_id != actor.id:
        logger.warning("Ignoring owner_id %s supplied by %s on create", requested_owner_id, actor.id)
    return actor.id
