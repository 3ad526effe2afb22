"""TodoService — status transitions and recurrence management for tasks."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from src.todos.models import TaskStatus

if TYPE_CHECKING:
    from datetime import date

    from src.recurrence.engine import RecurrenceEngine
    from src.recurrence.rule import RecurrenceRule
    from src.todos.models import Task
    from src.todos.store import TaskStore

logger = logging.getLogger(__name__)


class TodoService:
    """Task operations used by users and by the maintenance sweep.

    Args:
        store: TaskStore for persistence.
        engine: RecurrenceEngine that produces follow-up occurrences.
    """

    def __init__(self, store: TaskStore, engine: RecurrenceEngine) -> None:
        self._store = store
        self._engine = engine

    # -- Queries ---------------------------------------------------------------

    async def get_task(self, task_id: str, owner_id: str) -> Task | None:
        return await self._store.get_task(task_id, owner_id)

    async def list_tasks(self, owner_id: str, include_completed: bool = False) -> list[Task]:
        return await self._store.list_tasks(owner_id, include_completed=include_completed)

    async def get_due_today(self, owner_id: str, today: date | None = None) -> list[Task]:
        """Open tasks due on *today* (defaults to the current UTC date)."""
        today = today or datetime.now(UTC).date()
        return await self._store.list_due_on(owner_id, today)

    async def get_overdue(self, owner_id: str, today: date | None = None) -> list[Task]:
        """Open tasks due before *today* (defaults to the current UTC date)."""
        today = today or datetime.now(UTC).date()
        return await self._store.find_overdue(today, owner_id=owner_id)

    # -- Basic CRUD ------------------------------------------------------------

    async def create_todo(self, task: Task) -> Task:
        task = await self._store.insert(task)
        logger.info("Created task %s for owner %s", task.id, task.owner_id)
        return task

    async def delete_todo(self, task_id: str, owner_id: str) -> bool:
        return await self._store.delete_task(task_id, owner_id)

    # -- Status management -----------------------------------------------------

    async def complete(
        self,
        task_id: str,
        owner_id: str,
        actual_minutes: int | None = None,
        now: datetime | None = None,
    ) -> Task | None:
        """Mark a task completed and, for recurring tasks, generate the next one.

        Completion and generation share one transaction: either both are
        stored or neither is.  Completing an already-completed task returns it
        unchanged and generates nothing.  Returns None if the task is not found.
        """
        now = now or datetime.now(UTC)
        async with self._store.transaction() as tx:
            task = await tx.get_task(task_id, owner_id)
            if task is None:
                return None
            if task.is_completed:
                logger.info("Task %s is already completed", task_id)
                return task

            await tx.mark_completed(task.id, now, actual_minutes)
            task.status = TaskStatus.COMPLETED
            task.completed_at = now
            task.actual_minutes = actual_minutes

            if task.recurrence_rule_id and task.generate_next_on_complete:
                rule = await tx.get_rule(task.recurrence_rule_id)
                if rule is None:
                    logger.warning(
                        "Task %s references missing rule %s", task.id, task.recurrence_rule_id
                    )
                else:
                    await self._engine.advance(task, rule, now=now, store=tx)
        logger.info("Completed task %s for owner %s", task_id, owner_id)
        return task

    async def start(self, task_id: str, owner_id: str) -> Task | None:
        return await self._transition(task_id, owner_id, TaskStatus.IN_PROGRESS)

    async def cancel(self, task_id: str, owner_id: str) -> Task | None:
        return await self._transition(task_id, owner_id, TaskStatus.CANCELLED)

    async def defer(self, task_id: str, owner_id: str, new_due_date: date) -> Task | None:
        """Set the task to deferred with a new due date.

        Deferred tasks drop out of the maintenance sweep until a user moves
        them back to not started.
        """
        return await self._transition(task_id, owner_id, TaskStatus.DEFERRED, new_due_date)

    async def reopen(self, task_id: str, owner_id: str) -> Task | None:
        """Put a task back to not started so the sweep can see it again."""
        return await self._transition(task_id, owner_id, TaskStatus.NOT_STARTED)

    async def _transition(
        self,
        task_id: str,
        owner_id: str,
        status: TaskStatus,
        due_date: date | None = None,
    ) -> Task | None:
        async with self._store.transaction() as tx:
            task = await tx.get_task(task_id, owner_id)
            if task is None:
                return None
            await tx.set_status(task.id, status, due_date=due_date)
            return await tx.get_task(task.id)

    # -- Recurrence management -------------------------------------------------

    async def create_recurring(self, task: Task, rule: RecurrenceRule) -> Task:
        """Store *rule* and *task* together, with the task pointing at the rule.

        Raises InvalidRecurrenceRule if the rule does not validate.
        """
        rule.validate()
        async with self._store.transaction() as tx:
            await tx.add_rule(rule)
            task.recurrence_rule_id = rule.id
            await tx.insert(task)
        logger.info("Created recurring task %s with rule %s", task.id, rule.id)
        return task

    async def update_recurrence(
        self, task_id: str, owner_id: str, rule: RecurrenceRule
    ) -> Task | None:
        """Attach *rule* to a task, or overwrite the rule it already shares.

        Updating an existing rule changes it for the whole series, since every
        occurrence references the same rule.  *rule* itself is never modified.
        Returns None if the task is not found or its rule row has gone.
        """
        rule.validate()
        async with self._store.transaction() as tx:
            task = await tx.get_task(task_id, owner_id)
            if task is None:
                return None
            if task.recurrence_rule_id is None:
                await tx.add_rule(rule)
                await tx.attach_rule(task.id, rule.id)
                task.recurrence_rule_id = rule.id
            elif not await tx.update_rule(replace(rule, id=task.recurrence_rule_id)):
                logger.warning(
                    "Rule %s for task %s not found; recurrence not updated",
                    task.recurrence_rule_id,
                    task_id,
                )
                return None
        logger.info("Updated recurrence for task %s (rule %s)", task_id, task.recurrence_rule_id)
        return task

    async def generate_next(
        self, completed_task_id: str, owner_id: str, now: datetime | None = None
    ) -> Task | None:
        """Explicitly generate the occurrence following a completed task."""
        task = await self._store.get_task(completed_task_id, owner_id)
        if task is None or task.recurrence_rule_id is None:
            return None
        rule = await self._store.get_rule(task.recurrence_rule_id)
        return await self._engine.advance(task, rule, now=now)
