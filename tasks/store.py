"""
tasks/store.py -- SQLAlchemy-backed persistence layer for task records.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in tasks/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. TaskStore is the repository; _row_to_task
is the mapper. Route handlers never touch SQL directly.

Scoping: find() and count() apply TaskFilter.owner_id inside the WHERE
clause, so a scoped listing and its total are computed by the database over
the caller's rows only. Nothing is filtered after fetch.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TaskStore()                                # default database_url
    store = TaskStore("postgresql://user:pw@host/db")  # PostgreSQL
    task = store.create(Task(title="Buy milk", owner_id=user.id))
    tasks, total = store.find(TaskFilter(owner_id=user.id), TaskOrder(), offset=0, limit=10)
    store.update(task.id, status=Status.COMPLETED)
    store.close()
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    MetaData,
    String,
    Table,
    Text,
    case,
    create_engine,
    event,
    func,
    or_,
    select,
    text,
)
from sqlalchemy.engine import Engine

from core.config import get_settings
from tasks.models import Priority, SortField, Status, Task, TaskFilter, TaskOrder

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_tasks = Table(
    "tasks",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("title", String(200), nullable=False),
    Column("description", Text),
    Column("priority", String(10), nullable=False, server_default=Priority.MEDIUM.value),
    Column("status", String(20), nullable=False, server_default=Status.PENDING.value),
    Column("due_date", String(32)),
    Column("owner_id", String(36), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Fields update() accepts. owner_id, id and created_at are immutable.
_MUTABLE_FIELDS = frozenset({"title", "description", "priority", "status", "due_date"})

# Sorting by enum columns follows declaration order, not alphabetical order.
_PRIORITY_RANK = case(
    {p.value: rank for rank, p in enumerate(Priority)},
    value=_tasks.c.priority,
    else_=len(Priority),
)
_STATUS_RANK = case(
    {s.value: rank for rank, s in enumerate(Status)},
    value=_tasks.c.status,
    else_=len(Status),
)

_SORT_COLUMNS = {
    SortField.title: _tasks.c.title,
    SortField.status: _STATUS_RANK,
    SortField.priority: _PRIORITY_RANK,
    SortField.due_date: _tasks.c.due_date,
    SortField.created_at: _tasks.c.created_at,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _where(task_filter: TaskFilter) -> list:
    """Translate a TaskFilter into SQLAlchemy WHERE clauses."""
    clauses = []
    if task_filter.owner_id is not None:
        clauses.append(_tasks.c.owner_id == task_filter.owner_id)
    if task_filter.status is not None:
        clauses.append(_tasks.c.status == Status(task_filter.status).value)
    if task_filter.priority is not None:
        clauses.append(_tasks.c.priority == Priority(task_filter.priority).value)
    if task_filter.search:
        term = task_filter.search.lower()
        clauses.append(
            or_(
                func.lower(_tasks.c.title).contains(term, autoescape=True),
                func.lower(func.coalesce(_tasks.c.description, "")).contains(term, autoescape=True),
            )
        )
    return clauses


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TaskStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # SQLite requires check_same_thread=False because FastAPI runs
            # sync handlers on a thread pool.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find(
        self,
        task_filter: TaskFilter,
        order: TaskOrder = TaskOrder(),
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[Task], int]:
        """Return one page of matching tasks plus the total match count.

        Ties on the sort column are broken by id so pages are stable.
        """
        clauses = _where(task_filter)
        sort_col = _SORT_COLUMNS[SortField(order.field)]
        primary = sort_col.desc() if order.descending else sort_col.asc()
        query = select(_tasks).where(*clauses).order_by(primary, _tasks.c.id).offset(offset).limit(limit)
        count_query = select(func.count()).select_from(_tasks).where(*clauses)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            total = conn.execute(count_query).scalar() or 0
        return [_row_to_task(r) for r in rows], total

    def count(self, task_filter: TaskFilter = TaskFilter()) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_tasks).where(*_where(task_filter))).scalar()
        return result or 0

    def find_by_id(self, task_id: str) -> Optional[Task]:
        """Fetch a single task by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_tasks.select().where(_tasks.c.id == task_id)).fetchone()
        return _row_to_task(row) if row is not None else None

    def group_count(self, by: str) -> dict[str, int]:
        """Return {value: count} across all tasks, grouped by "status" or "priority".

        Every enum member appears in the result, zero-filled, so callers can
        render a fixed set of buckets.
        """
        if by == "status":
            column, members = _tasks.c.status, Status
        elif by == "priority":
            column, members = _tasks.c.priority, Priority
        else:
            raise ValueError(f"Cannot group tasks by {by!r}")
        counts = {m.value: 0 for m in members}
        with self.engine.connect() as conn:
            rows = conn.execute(select(column, func.count()).group_by(column)).fetchall()
        for value, n in rows:
            counts[value] = n
        return counts

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, task: Task) -> Task:
        """Insert a new task and return the stored record."""
        task_id = str(uuid.uuid4())
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _tasks.insert().values(
                    id=task_id,
                    title=task.title,
                    description=task.description,
                    priority=Priority(task.priority).value,
                    status=Status(task.status).value,
                    due_date=task.due_date,
                    owner_id=task.owner_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return self.find_by_id(task_id)

    def update(self, task_id: str, **fields) -> Optional[Task]:
        """Apply a partial update and return the updated task.

        Only the given fields change. Passing owner_id (or any other
        immutable field) raises ValueError -- ownership is fixed at creation.

        Returns None if task_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update task fields: {unknown!r}")
        if "priority" in fields:
            fields["priority"] = Priority(fields["priority"]).value
        if "status" in fields:
            fields["status"] = Status(fields["status"]).value
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.update().where(_tasks.c.id == task_id).values(**fields))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.find_by_id(task_id)

    def delete(self, task_id: str) -> bool:
        """Permanently delete a task. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(_tasks.c.id == task_id))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        title=row.title,
        description=row.description,
        priority=Priority(row.priority),
        status=Status(row.status),
        due_date=row.due_date,
        owner_id=row.owner_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
