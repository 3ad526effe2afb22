"""Tests for TodoService — completion, transitions, and recurrence management."""

from datetime import UTC, date, datetime
from unittest.mock import patch

import pytest

from src.recurrence.engine import RecurrenceEngine
from src.recurrence.rule import InvalidRecurrenceRule, RecurrenceRule, RecurrenceType
from src.todos.models import Task, TaskStatus
from src.todos.service import TodoService
from src.todos.store import TaskStore

NOW = datetime(2024, 3, 10, 9, 0, tzinfo=UTC)
TODAY = NOW.date()


@pytest.fixture
def service(store: TaskStore) -> TodoService:
    return TodoService(store, RecurrenceEngine(store))


def _task(task_id: str = "task1", **kwargs) -> Task:
    defaults = {"owner_id": "user-1", "title": "Stretch", "due_date": TODAY}
    defaults.update(kwargs)
    return Task(id=task_id, **defaults)


async def _recurring(service: TodoService, **rule_kwargs) -> Task:
    rule = RecurrenceRule(id="rule1", **rule_kwargs)
    return await service.create_recurring(_task(), rule)


# -- complete ------------------------------------------------------------------


async def test_complete_plain_task(service: TodoService, store: TaskStore) -> None:
    await service.create_todo(_task())

    task = await service.complete("task1", "user-1", actual_minutes=15, now=NOW)

    assert task is not None
    assert task.status == TaskStatus.COMPLETED
    assert task.completed_at == NOW
    stored = await store.get_task("task1")
    assert stored is not None
    assert stored.status == TaskStatus.COMPLETED
    assert stored.actual_minutes == 15
    assert len(await store.list_tasks("user-1")) == 0


async def test_complete_recurring_generates_next(service: TodoService, store: TaskStore) -> None:
    await _recurring(service)

    await service.complete("task1", "user-1", now=NOW)

    series = await store.list_series("rule1")
    assert [t.id for t in series][0] == "task1"
    assert len(series) == 2
    successor = series[1]
    assert successor.status == TaskStatus.NOT_STARTED
    assert successor.due_date == date(2024, 3, 11)
    assert successor.parent_task_id == "task1"
    assert successor.recurrence_rule_id == "rule1"


async def test_complete_respects_generate_next_flag(
    service: TodoService, store: TaskStore
) -> None:
    rule = RecurrenceRule(id="rule1")
    await service.create_recurring(_task(generate_next_on_complete=False), rule)

    await service.complete("task1", "user-1", now=NOW)

    assert len(await store.list_series("rule1")) == 1


async def test_complete_twice_generates_once(service: TodoService, store: TaskStore) -> None:
    await _recurring(service)

    await service.complete("task1", "user-1", now=NOW)
    again = await service.complete("task1", "user-1", now=NOW)

    assert again is not None
    assert again.is_completed
    assert len(await store.list_series("rule1")) == 2


async def test_complete_not_found(service: TodoService) -> None:
    assert await service.complete("nope", "user-1") is None


async def test_complete_wrong_owner(service: TodoService) -> None:
    await service.create_todo(_task())
    assert await service.complete("task1", "intruder") is None


async def test_complete_rolls_back_when_generation_fails(
    service: TodoService, store: TaskStore
) -> None:
    await _recurring(service)

    with (
        patch.object(RecurrenceEngine, "advance", side_effect=RuntimeError("insert failed")),
        pytest.raises(RuntimeError),
    ):
        await service.complete("task1", "user-1", now=NOW)

    task = await store.get_task("task1")
    assert task is not None
    assert task.status == TaskStatus.NOT_STARTED
    assert task.completed_at is None


async def test_complete_with_ended_rule_creates_nothing(
    service: TodoService, store: TaskStore
) -> None:
    await _recurring(service, end_date=date(2024, 3, 1))

    task = await service.complete("task1", "user-1", now=NOW)

    assert task is not None
    assert task.is_completed
    assert len(await store.list_series("rule1")) == 1


# -- transitions ---------------------------------------------------------------


async def test_start_cancel_reopen(service: TodoService) -> None:
    await service.create_todo(_task())

    started = await service.start("task1", "user-1")
    assert started is not None
    assert started.status == TaskStatus.IN_PROGRESS

    cancelled = await service.cancel("task1", "user-1")
    assert cancelled is not None
    assert cancelled.status == TaskStatus.CANCELLED

    reopened = await service.reopen("task1", "user-1")
    assert reopened is not None
    assert reopened.status == TaskStatus.NOT_STARTED


async def test_reopen_completed_clears_completed_at(service: TodoService) -> None:
    await service.create_todo(_task())
    await service.complete("task1", "user-1", now=NOW)

    reopened = await service.reopen("task1", "user-1")

    assert reopened is not None
    assert reopened.completed_at is None


async def test_defer_sets_new_due_date(service: TodoService) -> None:
    await service.create_todo(_task())

    deferred = await service.defer("task1", "user-1", date(2024, 4, 1))

    assert deferred is not None
    assert deferred.status == TaskStatus.DEFERRED
    assert deferred.due_date == date(2024, 4, 1)


async def test_transition_missing_task(service: TodoService) -> None:
    assert await service.start("nope", "user-1") is None
    assert await service.defer("nope", "user-1", TODAY) is None


# -- queries -------------------------------------------------------------------


async def test_due_today_and_overdue(service: TodoService) -> None:
    await service.create_todo(_task("today"))
    await service.create_todo(_task("late", due_date=date(2024, 3, 1)))
    await service.create_todo(_task("late-other-owner", owner_id="user-2", due_date=date(2024, 3, 1)))

    assert [t.id for t in await service.get_due_today("user-1", TODAY)] == ["today"]
    assert [t.id for t in await service.get_overdue("user-1", TODAY)] == ["late"]


async def test_delete_todo(service: TodoService) -> None:
    await service.create_todo(_task())
    assert await service.delete_todo("task1", "user-1") is True
    assert await service.get_task("task1", "user-1") is None


# -- recurrence management -----------------------------------------------------


async def test_create_recurring_links_rule(service: TodoService, store: TaskStore) -> None:
    task = await _recurring(service, type=RecurrenceType.MONTHLY, monthly_day="last")

    assert task.recurrence_rule_id == "rule1"
    rule = await store.get_rule("rule1")
    assert rule is not None
    assert rule.monthly_day == "last"


async def test_create_recurring_rejects_invalid_rule(
    service: TodoService, store: TaskStore
) -> None:
    with pytest.raises(InvalidRecurrenceRule):
        await service.create_recurring(_task(), RecurrenceRule(id="bad", interval=0))

    assert await store.get_task("task1") is None
    assert await store.get_rule("bad") is None


async def test_update_recurrence_attaches_new_rule(
    service: TodoService, store: TaskStore
) -> None:
    await service.create_todo(_task())

    task = await service.update_recurrence(
        "task1", "user-1", RecurrenceRule(id="weekly", type=RecurrenceType.WEEKLY)
    )

    assert task is not None
    assert task.recurrence_rule_id == "weekly"
    stored = await store.get_task("task1")
    assert stored is not None
    assert stored.recurrence_rule_id == "weekly"


async def test_update_recurrence_edits_shared_rule(
    service: TodoService, store: TaskStore
) -> None:
    await _recurring(service)
    await service.complete("task1", "user-1", now=NOW)

    await service.update_recurrence(
        "task1", "user-1", RecurrenceRule(id="ignored", type=RecurrenceType.YEARLY)
    )

    rule = await store.get_rule("rule1")
    assert rule is not None
    assert rule.type == RecurrenceType.YEARLY
    assert await store.get_rule("ignored") is None
    # Every occurrence still points at the same rule
    assert {t.recurrence_rule_id for t in await store.list_series("rule1")} == {"rule1"}


async def test_update_recurrence_leaves_argument_untouched(service: TodoService) -> None:
    await _recurring(service)
    new_rule = RecurrenceRule(id="caller-id", type=RecurrenceType.YEARLY)

    await service.update_recurrence("task1", "user-1", new_rule)

    assert new_rule.id == "caller-id"


async def test_update_recurrence_missing_rule_row(service: TodoService) -> None:
    await _recurring(service)

    with patch.object(TaskStore, "update_rule", return_value=False):
        result = await service.update_recurrence(
            "task1", "user-1", RecurrenceRule(id="r", type=RecurrenceType.YEARLY)
        )

    assert result is None


async def test_update_recurrence_validates(service: TodoService) -> None:
    await service.create_todo(_task())
    with pytest.raises(InvalidRecurrenceRule):
        await service.update_recurrence(
            "task1", "user-1", RecurrenceRule(id="r", type=RecurrenceType.MONTHLY)
        )


async def test_generate_next_explicit(service: TodoService, store: TaskStore) -> None:
    rule = RecurrenceRule(id="rule1")
    done = _task(status=TaskStatus.COMPLETED, completed_at=NOW)
    await service.create_recurring(done, rule)

    next_task = await service.generate_next("task1", "user-1", now=NOW)

    assert next_task is not None
    assert next_task.parent_task_id == "task1"
    assert len(await store.list_series("rule1")) == 2


async def test_generate_next_without_rule(service: TodoService) -> None:
    await service.create_todo(_task())
    assert await service.generate_next("task1", "user-1") is None
