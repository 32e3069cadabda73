"""
api/routes/v1/tasks.py -- Task routes for the Taskboard REST API.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /tasks              -- list tasks (admin: all, user: own), paginated
  GET    /tasks/stats        -- aggregate counts (admin only)
  POST   /tasks              -- create a task owned by the caller
  GET    /tasks/{task_id}    -- task detail
  PUT    /tasks/{task_id}    -- partial update
  DELETE /tasks/{task_id}    -- hard delete

Every handler follows the same shape: load -> tasks.policy -> store. Single-
task routes load the task first and let the policy decide, so a missing task
is a 404 for everybody while someone else's task is a 403.

Handlers are plain `def` so FastAPI runs them on its thread pool; the store
calls are the only blocking points and never stall the event loop.
"""

from __future__ import annotations

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.models import (
    Pagination,
    SortOrder,
    TaskCreate,
    TaskListResponse,
    TaskResponse,
    TaskStatsResponse,
    TaskUpdate,
)
from auth.dependencies import authenticate
from auth.models import Identity
from auth.store import UserStore
from tasks.models import Priority, SortField, Status, Task, TaskFilter, TaskOrder
from tasks.policy import Operation, enforce, resolve_owner, scope_filter
from tasks.store import TaskStore

# All task routes require authentication.
# Router-level dependency applies to every route registered on this router;
# handlers that need the identity declare it again and FastAPI reuses the
# cached result.
router = APIRouter(dependencies=[Depends(authenticate)])


def _owner_map(request: Request, tasks: list[Task]) -> dict:
    user_store: UserStore = request.app.state.user_store
    return user_store.get_many({t.owner_id for t in tasks})


# ---------------------------------------------------------------------------
# GET /tasks -- scoped listing
# ---------------------------------------------------------------------------


@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    request: Request,
    identity: Identity = Depends(authenticate),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[Status] = None,
    priority: Optional[Priority] = None,
    search: Optional[str] = Query(None, max_length=100),
    sort: SortField = SortField.created_at,
    order: SortOrder = SortOrder.desc,
) -> TaskListResponse:
    """Return one page of the tasks the caller may see.

    Non-admins are scoped to their own tasks inside the query itself, so
    pagination.total is the size of the caller's scope, not of the table.
    """
    task_store: TaskStore = request.app.state.task_store
    enforce(identity, Operation.LIST)

    search = search.strip() if search else None
    task_filter = scope_filter(identity, TaskFilter(status=status, priority=priority, search=search or None))
    tasks, total = task_store.find(
        task_filter,
        TaskOrder(field=sort, descending=order is SortOrder.desc),
        offset=(page - 1) * limit,
        limit=limit,
    )
    owners = _owner_map(request, tasks)
    return TaskListResponse(
        tasks=[TaskResponse.from_task(t, owners.get(t.owner_id)) for t in tasks],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


# ---------------------------------------------------------------------------
# GET /tasks/stats -- must be registered before /tasks/{task_id}
# ---------------------------------------------------------------------------


@router.get("/tasks/stats", response_model=TaskStatsResponse)
def task_stats(request: Request, identity: Identity = Depends(authenticate)) -> TaskStatsResponse:
    """Return task counts by status and priority across every account. Admin only."""
    enforce(identity, Operation.STATS)
    task_store: TaskStore = request.app.state.task_store
    user_store: UserStore = request.app.state.user_store
    return TaskStatsResponse(
        total_tasks=task_store.count(),
        total_users=user_store.count_users(),
        by_status=task_store.group_count("status"),
        by_priority=task_store.group_count("priority"),
    )


# ---------------------------------------------------------------------------
# POST /tasks
# ---------------------------------------------------------------------------


@router.post("/tasks", response_model=TaskResponse, status_code=201)
def create_task(request: Request, body: TaskCreate, identity: Identity = Depends(authenticate)) -> TaskResponse:
    """Create a task. The owner is always the caller, whatever body.owner_id says."""
    task_store: TaskStore = request.app.state.task_store
    enforce(identity, Operation.CREATE)

    task = task_store.create(
        Task(
            title=body.title,
            description=body.description,
            priority=body.priority,
            due_date=body.due_date.isoformat() if body.due_date else None,
            owner_id=resolve_owner(identity, body.owner_id),
        )
    )
    return TaskResponse.from_task(task, identity)


# ---------------------------------------------------------------------------
# Single-task routes
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(request: Request, task_id: str, identity: Identity = Depends(authenticate)) -> TaskResponse:
    task_store: TaskStore = request.app.state.task_store
    task = task_store.find_by_id(task_id)
    enforce(identity, Operation.READ, task)
    return TaskResponse.from_task(task, _owner_map(request, [task]).get(task.owner_id))


@router.put("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    request: Request,
    task_id: str,
    body: TaskUpdate,
    identity: Identity = Depends(authenticate),
) -> TaskResponse:
    """Apply a partial update. Fields absent from the body are left alone.

    Read -> decide -> write. Ownership never changes after creation, so the
    task cannot change hands between the policy check and the write.
    """
    task_store: TaskStore = request.app.state.task_store
    task = task_store.find_by_id(task_id)
    enforce(identity, Operation.UPDATE, task)

    changes = body.model_dump(exclude_unset=True)
    if "due_date" in changes:
        changes["due_date"] = changes["due_date"].isoformat() if changes["due_date"] else None

    updated = task_store.update(task_id, **changes) if changes else task
    # Deleted between read and write: same outcome as never having existed.
    enforce(identity, Operation.UPDATE, updated)
    return TaskResponse.from_task(updated, _owner_map(request, [updated]).get(updated.owner_id))


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(request: Request, task_id: str, identity: Identity = Depends(authenticate)) -> Response:
    task_store: TaskStore = request.app.state.task_store
    task = task_store.find_by_id(task_id)
    enforce(identity, Operation.DELETE, task)
    task_store.delete(task_id)
    return Response(status_code=204)
