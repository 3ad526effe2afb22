"""MaintenanceRunner — the periodic sweep over due and overdue tasks."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from src.scheduler.models import MaintenanceRun, SweepTrigger

if TYPE_CHECKING:
    from datetime import date

    from src.todos.service import TodoService
    from src.todos.store import TaskStore

logger = logging.getLogger(__name__)

PHASE_RECURRING = "recurring"
PHASE_OVERDUE = "overdue"


class MaintenanceRunner:
    """Completes due recurring tasks and reports overdue ones.

    Each due task is completed through the TodoService, which generates the
    next occurrence in the same transaction.  Completed tasks no longer match
    the due query, so repeated sweeps never advance a task twice.

    Args:
        store: TaskStore queried for candidates.
        todo_service: TodoService that completes (and regenerates) tasks.
        candidate_limit: Maximum due tasks handled per sweep (None = all).
    """

    def __init__(
        self,
        store: TaskStore,
        todo_service: TodoService,
        candidate_limit: int | None = None,
    ) -> None:
        self._store = store
        self._todo_service = todo_service
        self._candidate_limit = candidate_limit
        self._lock = asyncio.Lock()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    async def run(self, trigger: SweepTrigger | None = None) -> MaintenanceRun:
        """Run one sweep. Never raises; failures are reflected in the outcome."""
        trigger = trigger or SweepTrigger.now()
        outcome = MaintenanceRun(run_id=trigger.run_id, started_at=trigger.fired_at)

        if self._lock.locked():
            logger.warning(
                "Task maintenance %s skipped: previous sweep still running", trigger.run_id
            )
            outcome.skipped = True
            outcome.finished_at = datetime.now(UTC)
            return outcome

        async with self._lock:
            logger.info("Starting task maintenance %s (as of %s)", trigger.run_id, trigger.as_of)
            await self._process_recurring(trigger, outcome)
            await self._check_overdue(trigger.as_of, outcome)
            outcome.finished_at = datetime.now(UTC)

        if outcome.ok:
            logger.info("Task maintenance completed: %s", outcome.summary())
        else:
            logger.warning("Task maintenance completed with problems: %s", outcome.summary())
        return outcome

    async def _process_recurring(self, trigger: SweepTrigger, outcome: MaintenanceRun) -> None:
        try:
            candidates = await self._store.find_due_recurring(
                trigger.as_of, limit=self._candidate_limit
            )
        except Exception:
            logger.exception("Error querying due recurring tasks")
            outcome.failed_phases.append(PHASE_RECURRING)
            return

        outcome.tasks_scanned = len(candidates)
        logger.info("Found %d recurring task(s) to process", len(candidates))

        for task in candidates:
            try:
                completed = await self._todo_service.complete(
                    task.id, task.owner_id, now=trigger.fired_at
                )
            except Exception:
                logger.exception("Error processing recurring task %s (%s)", task.id, task.title)
                outcome.errors += 1
                continue
            if completed is None:
                logger.warning("Recurring task %s disappeared before completion", task.id)
                continue
            outcome.tasks_advanced += 1
            logger.info("Processed recurring task: %s - %s", task.id, task.title)

    async def _check_overdue(self, as_of: date, outcome: MaintenanceRun) -> None:
        # Reporting only: overdue tasks are counted, never modified.
        try:
            overdue = await self._store.find_overdue(as_of)
        except Exception:
            logger.exception("Error checking overdue tasks")
            outcome.failed_phases.append(PHASE_OVERDUE)
            return

        outcome.overdue_count = len(overdue)
        logger.info("Found %d overdue task(s)", len(overdue))
