"""Todo items — models, persistence, and status/recurrence operations."""

from src.todos.models import Task, TaskPriority, TaskStatus, make_task_id
from src.todos.service import TodoService
from src.todos.store import TaskStore

__all__ = [
    "Task",
    "TaskPriority",
    "TaskStatus",
    "TaskStore",
    "TodoService",
    "make_task_id",
]
