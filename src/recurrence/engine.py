"""RecurrenceEngine — turns a completed occurrence into the next one."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from src.todos.models import Task, TaskStatus

if TYPE_CHECKING:
    from src.recurrence.rule import RecurrenceRule
    from src.todos.store import TaskStore

logger = logging.getLogger(__name__)


class RecurrenceEngine:
    """Generates the next occurrence of a recurring task.

    Args:
        store: TaskStore the new occurrence is inserted into.
    """

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    async def advance(
        self,
        completed_task: Task,
        rule: RecurrenceRule | None,
        *,
        now: datetime | None = None,
        store: TaskStore | None = None,
    ) -> Task | None:
        """Insert and return the occurrence that follows *completed_task*.

        Returns None without writing anything when there is no rule, the task
        is not completed, the rule's end date has passed, or the next date
        cannot be computed.  *store* overrides the engine's store so callers
        can insert inside their own transaction.
        """
        if rule is None:
            return None

        if completed_task.status != TaskStatus.COMPLETED:
            logger.warning(
                "Refusing to advance task %s in status %s",
                completed_task.id,
                completed_task.status,
            )
            return None

        now = now or datetime.now(UTC)
        if rule.has_ended(now.date()):
            logger.info(
                "Recurrence has ended for task %s (rule %s, end %s)",
                completed_task.id,
                rule.id,
                rule.end_date,
            )
            return None

        # Due date first so early or late completion doesn't shift the schedule
        base = completed_task.due_date or completed_task.completed_at or now
        try:
            next_due = rule.next_occurrence(base)
        except (ValueError, OverflowError):
            logger.warning(
                "Could not calculate next occurrence for task %s from %s",
                completed_task.id,
                base,
                exc_info=True,
            )
            return None

        next_task = Task(
            owner_id=completed_task.owner_id,
            title=completed_task.title,
            description=completed_task.description,
            status=TaskStatus.NOT_STARTED,
            priority=completed_task.priority,
            category_id=completed_task.category_id,
            due_date=next_due,
            created_at=now,
            estimated_minutes=completed_task.estimated_minutes,
            recurrence_rule_id=rule.id,
            parent_task_id=completed_task.id,
            generate_next_on_complete=completed_task.generate_next_on_complete,
        )
        await (store or self._store).insert(next_task)
        logger.info(
            "Generated next occurrence %s (due %s) from completed task %s",
            next_task.id,
            next_due,
            completed_task.id,
        )
        return next_task
