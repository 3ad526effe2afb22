"""Recurrence rules and next-occurrence generation."""

from src.recurrence.engine import RecurrenceEngine
from src.recurrence.rule import (
    InvalidRecurrenceRule,
    RecurrenceRule,
    RecurrenceType,
    Weekday,
    make_rule_id,
)

__all__ = [
    "InvalidRecurrenceRule",
    "RecurrenceEngine",
    "RecurrenceRule",
    "RecurrenceType",
    "Weekday",
    "make_rule_id",
]
