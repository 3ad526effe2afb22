"""Tests for RecurrenceEngine — occurrence advancement."""

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock

import pytest

from src.recurrence.engine import RecurrenceEngine
from src.recurrence.rule import RecurrenceRule, RecurrenceType
from src.todos.models import Task, TaskPriority, TaskStatus
from src.todos.store import TaskStore

NOW = datetime(2024, 3, 10, 9, 0, tzinfo=UTC)


@pytest.fixture
async def engine(store: TaskStore) -> RecurrenceEngine:
    await store.add_rule(_rule())
    return RecurrenceEngine(store)


def _rule(**kwargs) -> RecurrenceRule:
    return RecurrenceRule(id="rule1", **kwargs)


def _completed(**kwargs) -> Task:
    defaults = {
        "id": "task1",
        "owner_id": "user-1",
        "title": "Take out recycling",
        "status": TaskStatus.COMPLETED,
        "completed_at": NOW,
        "due_date": date(2024, 3, 10),
        "recurrence_rule_id": "rule1",
    }
    defaults.update(kwargs)
    return Task(**defaults)


# -- Successful advance --------------------------------------------------------


async def test_advance_creates_next_occurrence(engine: RecurrenceEngine, store: TaskStore) -> None:
    completed = _completed(
        description="Blue bin",
        priority=TaskPriority.HIGH,
        category_id="home",
        estimated_minutes=5,
        generate_next_on_complete=False,
    )

    next_task = await engine.advance(completed, _rule(), now=NOW)

    assert next_task is not None
    assert next_task.id
    assert next_task.status == TaskStatus.NOT_STARTED
    assert next_task.completed_at is None
    assert next_task.due_date == date(2024, 3, 11)
    assert next_task.title == "Take out recycling"
    assert next_task.description == "Blue bin"
    assert next_task.priority == TaskPriority.HIGH
    assert next_task.category_id == "home"
    assert next_task.estimated_minutes == 5
    assert next_task.owner_id == "user-1"
    assert next_task.generate_next_on_complete is False

    stored = await store.get_task(next_task.id)
    assert stored == next_task


async def test_lineage_links_parent_and_shares_rule(engine: RecurrenceEngine) -> None:
    rule = _rule(type=RecurrenceType.WEEKLY)

    next_task = await engine.advance(_completed(), rule, now=NOW)

    assert next_task is not None
    assert next_task.parent_task_id == "task1"
    assert next_task.recurrence_rule_id == rule.id


async def test_advance_does_not_mutate_completed_task(engine: RecurrenceEngine) -> None:
    completed = _completed()
    before = Task(**vars(completed))

    await engine.advance(completed, _rule(), now=NOW)

    assert completed == before


# -- Base date selection -------------------------------------------------------


async def test_base_date_prefers_due_date(engine: RecurrenceEngine) -> None:
    # Completed late: schedule stays anchored to the due date
    completed = _completed(due_date=date(2024, 3, 1), completed_at=NOW)

    next_task = await engine.advance(completed, _rule(interval=7), now=NOW)

    assert next_task is not None
    assert next_task.due_date == date(2024, 3, 8)


async def test_base_date_falls_back_to_completed_at(engine: RecurrenceEngine) -> None:
    completed = _completed(due_date=None, completed_at=datetime(2024, 2, 20, 18, tzinfo=UTC))

    next_task = await engine.advance(completed, _rule(), now=NOW)

    assert next_task is not None
    assert next_task.due_date == date(2024, 2, 21)


# -- Suppressed / no-op cases --------------------------------------------------


async def test_null_rule_is_noop() -> None:
    store = AsyncMock()
    engine = RecurrenceEngine(store)

    assert await engine.advance(_completed(), None, now=NOW) is None
    store.insert.assert_not_called()


async def test_end_date_in_past_suppresses_advance() -> None:
    store = AsyncMock()
    engine = RecurrenceEngine(store)
    rule = _rule(end_date=date(2024, 3, 9))

    assert await engine.advance(_completed(), rule, now=NOW) is None
    store.insert.assert_not_called()


async def test_end_date_today_still_advances(engine: RecurrenceEngine) -> None:
    rule = _rule(end_date=date(2024, 3, 10))
    assert await engine.advance(_completed(), rule, now=NOW) is not None


async def test_not_completed_task_is_not_advanced() -> None:
    store = AsyncMock()
    engine = RecurrenceEngine(store)
    task = Task(id="task1", owner_id="user-1", title="t", recurrence_rule_id="rule1")

    assert await engine.advance(task, _rule(), now=NOW) is None
    store.insert.assert_not_called()


async def test_date_overflow_returns_none() -> None:
    store = AsyncMock()
    engine = RecurrenceEngine(store)
    completed = _completed(due_date=date(9999, 12, 31))

    assert await engine.advance(completed, _rule(), now=NOW) is None
    store.insert.assert_not_called()


# -- Store override ------------------------------------------------------------


async def test_store_override_used_for_insert() -> None:
    default_store = AsyncMock()
    tx_store = AsyncMock()
    engine = RecurrenceEngine(default_store)

    next_task = await engine.advance(_completed(), _rule(), now=NOW, store=tx_store)

    tx_store.insert.assert_awaited_once_with(next_task)
    default_store.insert.assert_not_called()


async def test_insert_failure_propagates() -> None:
    store = AsyncMock()
    store.insert.side_effect = RuntimeError("disk full")
    engine = RecurrenceEngine(store)

    with pytest.raises(RuntimeError, match="disk full"):
        await engine.advance(_completed(), _rule(), now=NOW)
