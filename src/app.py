"""Application wiring — builds the store, services, runner, and scheduler."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from src.config import settings
from src.recurrence.engine import RecurrenceEngine
from src.scheduler.engine import SchedulerEngine
from src.scheduler.runner import MaintenanceRunner
from src.todos.service import TodoService
from src.todos.store import TaskStore

logger = logging.getLogger(__name__)


@dataclass
class App:
    """The wired object graph. Tests build one around a temp-file store."""

    store: TaskStore
    recurrence: RecurrenceEngine
    todos: TodoService
    runner: MaintenanceRunner
    scheduler: SchedulerEngine


def create_app(store: TaskStore | None = None) -> App:
    """Wire every component, using the shared TaskStore unless one is given."""
    store = store or TaskStore.get()
    recurrence = RecurrenceEngine(store)
    todos = TodoService(store, recurrence)
    runner = MaintenanceRunner(
        store,
        todos,
        candidate_limit=settings.get_candidate_limit(),
    )
    scheduler = SchedulerEngine(runner)
    logger.debug(
        "App wired (cron=%s, tz=%s, limit=%s)",
        settings.maintenance_cron,
        settings.scheduler_timezone,
        settings.get_candidate_limit(),
    )
    return App(
        store=store,
        recurrence=recurrence,
        todos=todos,
        runner=runner,
        scheduler=scheduler,
    )
