"""TaskStore — libsql persistence for todo items and recurrence rules."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from src.db import get_connection, transaction
from src.recurrence.rule import RecurrenceRule
from src.todos.models import Task, TaskStatus, make_task_id

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import date, datetime
    from pathlib import Path

    from src.db import _AsyncConnection

logger = logging.getLogger(__name__)

_CREATE_RULES_TABLE = """
CREATE TABLE IF NOT EXISTS recurrence_rules (
    id              TEXT PRIMARY KEY,
    type            TEXT NOT NULL,
    interval        INTEGER NOT NULL DEFAULT 1,
    days_of_week    TEXT NOT NULL DEFAULT '',
    monthly_day     TEXT,
    start_date      TEXT,
    end_date        TEXT,
    max_occurrences INTEGER
)
"""

_CREATE_TASKS_TABLE = """
CREATE TABLE IF NOT EXISTS todo_items (
    id                       TEXT PRIMARY KEY,
    owner_id                 TEXT NOT NULL,
    title                    TEXT NOT NULL,
    description              TEXT,
    status                   TEXT NOT NULL,
    priority                 TEXT NOT NULL,
    category_id              TEXT,
    due_date                 TEXT,
    created_at               TEXT NOT NULL,
    completed_at             TEXT,
    estimated_minutes        INTEGER,
    actual_minutes           INTEGER,
    recurrence_rule_id       TEXT REFERENCES recurrence_rules(id),
    parent_task_id           TEXT,
    generate_next_on_complete INTEGER NOT NULL DEFAULT 1
)
"""

_CREATE_DUE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_todo_items_status_due
    ON todo_items (status, due_date)
"""

_TASK_COLUMNS = (
    "id, owner_id, title, description, status, priority, category_id, due_date, "
    "created_at, completed_at, estimated_minutes, actual_minutes, "
    "recurrence_rule_id, parent_task_id, generate_next_on_complete"
)

_RULE_COLUMNS = (
    "id, type, interval, days_of_week, monthly_day, start_date, end_date, max_occurrences"
)


class TaskStore:
    """Persists tasks and their recurrence rules in SQLite / Turso.

    Singleton accessed via ``TaskStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).

    Each call opens, commits and closes its own connection.  Inside
    ``async with store.transaction() as tx`` the yielded store shares one
    connection, and all of its writes commit or roll back together.
    """

    _instance: TaskStore | None = None

    def __init__(
        self,
        db_path: Path | None = None,
        *,
        _conn: _AsyncConnection | None = None,
    ) -> None:
        self._db_path = db_path
        self._conn = _conn
        self._initialised = _conn is not None

    @classmethod
    def get(cls) -> TaskStore:
        """Return the shared TaskStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> _AsyncConnection:
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            await db.execute(_CREATE_RULES_TABLE)
            await db.execute(_CREATE_TASKS_TABLE)
            await db.execute(_CREATE_DUE_INDEX)
            await db.commit()
            self._initialised = True
        return db

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[_AsyncConnection]:
        """Yield the bound connection, or a fresh one committed on exit."""
        if self._conn is not None:
            yield self._conn
            return
        async with transaction(await self._connect()) as db:
            yield db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[TaskStore]:
        """Yield a store whose operations share one transaction."""
        if self._conn is not None:
            yield self
            return
        async with transaction(await self._connect()) as db:
            yield TaskStore(self._db_path, _conn=db)

    async def _fetch_tasks(self, sql: str, params: tuple = ()) -> list[Task]:
        async with self._session() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [Task.from_row(row) for row in rows]

    # -- Sweep queries ---------------------------------------------------------

    async def find_due_recurring(self, as_of: date, limit: int | None = None) -> list[Task]:
        """Not-started tasks with a rule attached and a due date on or before *as_of*."""
        sql = (
            f"SELECT {_TASK_COLUMNS} FROM todo_items"
            " WHERE recurrence_rule_id IS NOT NULL"
            " AND status = ? AND due_date IS NOT NULL AND due_date <= ?"
            " ORDER BY due_date, created_at"
        )
        params: tuple = (str(TaskStatus.NOT_STARTED), as_of.isoformat())
        if limit:
            sql += " LIMIT ?"
            params += (limit,)
        return await self._fetch_tasks(sql, params)

    async def find_overdue(self, as_of: date, owner_id: str | None = None) -> list[Task]:
        """Open tasks (not completed or cancelled) due strictly before *as_of*.

        Pass *owner_id* to restrict the result to one owner.
        """
        sql = (
            f"SELECT {_TASK_COLUMNS} FROM todo_items"
            " WHERE status NOT IN (?, ?) AND due_date IS NOT NULL AND due_date < ?"
        )
        params: tuple = (
            str(TaskStatus.COMPLETED),
            str(TaskStatus.CANCELLED),
            as_of.isoformat(),
        )
        if owner_id is not None:
            sql += " AND owner_id = ?"
            params += (owner_id,)
        sql += " ORDER BY due_date, created_at"
        return await self._fetch_tasks(sql, params)

    # -- Tasks -----------------------------------------------------------------

    async def insert(self, task: Task) -> Task:
        """Insert a task, assigning an ID if it has none. Returns the same object."""
        if not task.id:
            task.id = make_task_id()
        async with self._session() as db:
            await db.execute(
                f"INSERT INTO todo_items ({_TASK_COLUMNS})"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                task.to_row(),
            )
        logger.info("Inserted task %s for owner %s", task.id, task.owner_id)
        return task

    async def get_task(self, task_id: str, owner_id: str | None = None) -> Task | None:
        """Fetch a task by ID (optionally scoped to an owner), or None."""
        sql = f"SELECT {_TASK_COLUMNS} FROM todo_items WHERE id = ?"
        params: tuple = (task_id,)
        if owner_id is not None:
            sql += " AND owner_id = ?"
            params += (owner_id,)
        tasks = await self._fetch_tasks(sql, params)
        return tasks[0] if tasks else None

    async def list_tasks(self, owner_id: str, include_completed: bool = False) -> list[Task]:
        """Return an owner's tasks, soonest due first; undated tasks last."""
        sql = f"SELECT {_TASK_COLUMNS} FROM todo_items WHERE owner_id = ?"
        params: tuple = (owner_id,)
        if not include_completed:
            sql += " AND status NOT IN (?, ?)"
            params += (str(TaskStatus.COMPLETED), str(TaskStatus.CANCELLED))
        sql += " ORDER BY due_date IS NULL, due_date, created_at"
        return await self._fetch_tasks(sql, params)

    async def list_due_on(self, owner_id: str, day: date) -> list[Task]:
        """Return an owner's open tasks due exactly on *day*."""
        return await self._fetch_tasks(
            f"SELECT {_TASK_COLUMNS} FROM todo_items"
            " WHERE owner_id = ? AND due_date = ? AND status NOT IN (?, ?)"
            " ORDER BY created_at",
            (
                owner_id,
                day.isoformat(),
                str(TaskStatus.COMPLETED),
                str(TaskStatus.CANCELLED),
            ),
        )

    async def list_series(self, rule_id: str) -> list[Task]:
        """Return every occurrence sharing *rule_id*, oldest due date first."""
        return await self._fetch_tasks(
            f"SELECT {_TASK_COLUMNS} FROM todo_items"
            " WHERE recurrence_rule_id = ? ORDER BY due_date, created_at",
            (rule_id,),
        )

    async def mark_completed(
        self,
        task_id: str,
        completed_at: datetime,
        actual_minutes: int | None = None,
    ) -> bool:
        """Set status to completed with its timestamp. Returns True if a row changed."""
        async with self._session() as db:
            cursor = await db.execute(
                "UPDATE todo_items SET status = ?, completed_at = ?, actual_minutes = ?"
                " WHERE id = ?",
                (str(TaskStatus.COMPLETED), completed_at.isoformat(), actual_minutes, task_id),
            )
            updated = cursor.rowcount > 0
        if updated:
            logger.info("Completed task %s", task_id)
        return updated

    async def set_status(
        self,
        task_id: str,
        status: TaskStatus,
        due_date: date | None = None,
    ) -> bool:
        """Move a task to a non-completed status, clearing ``completed_at``.

        When *due_date* is given it replaces the task's due date.
        """
        if status == TaskStatus.COMPLETED:
            msg = "Use mark_completed() to complete a task"
            raise ValueError(msg)
        sql = "UPDATE todo_items SET status = ?, completed_at = NULL"
        params: tuple = (str(status),)
        if due_date is not None:
            sql += ", due_date = ?"
            params += (due_date.isoformat(),)
        sql += " WHERE id = ?"
        params += (task_id,)
        async with self._session() as db:
            cursor = await db.execute(sql, params)
            updated = cursor.rowcount > 0
        if updated:
            logger.info("Task %s -> %s", task_id, status)
        return updated

    async def delete_task(self, task_id: str, owner_id: str) -> bool:
        """Delete a task. Returns True if a row was removed."""
        async with self._session() as db:
            cursor = await db.execute(
                "DELETE FROM todo_items WHERE id = ? AND owner_id = ?",
                (task_id, owner_id),
            )
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted task %s for owner %s", task_id, owner_id)
        return deleted

    # -- Recurrence rules ------------------------------------------------------

    async def add_rule(self, rule: RecurrenceRule) -> RecurrenceRule:
        """Insert a recurrence rule. Returns the same object."""
        async with self._session() as db:
            await db.execute(
                f"INSERT INTO recurrence_rules ({_RULE_COLUMNS})"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                rule.to_row(),
            )
        logger.info("Added recurrence rule %s (%s)", rule.id, rule.type)
        return rule

    async def get_rule(self, rule_id: str) -> RecurrenceRule | None:
        """Fetch a rule by ID, or None if not found."""
        async with self._session() as db:
            cursor = await db.execute(
                f"SELECT {_RULE_COLUMNS} FROM recurrence_rules WHERE id = ?",
                (rule_id,),
            )
            row = await cursor.fetchone()
        return RecurrenceRule.from_row(row) if row else None

    async def update_rule(self, rule: RecurrenceRule) -> bool:
        """Overwrite a rule in place; every task in the series sees the change."""
        row = rule.to_row()
        async with self._session() as db:
            cursor = await db.execute(
                "UPDATE recurrence_rules SET type = ?, interval = ?, days_of_week = ?,"
                " monthly_day = ?, start_date = ?, end_date = ?, max_occurrences = ?"
                " WHERE id = ?",
                (*row[1:], row[0]),
            )
            updated = cursor.rowcount > 0
        if updated:
            logger.info("Updated recurrence rule %s", rule.id)
        return updated

    async def attach_rule(self, task_id: str, rule_id: str) -> bool:
        """Point a task at a recurrence rule."""
        async with self._session() as db:
            cursor = await db.execute(
                "UPDATE todo_items SET recurrence_rule_id = ? WHERE id = ?",
                (rule_id, task_id),
            )
            return cursor.rowcount > 0
