"""RecurrenceRule — repetition pattern and next-occurrence computation.

Month and year arithmetic goes through ``dateutil.relativedelta`` so that a
day that does not exist in the target month is clamped to the month's last
day instead of skipping the month (Jan 31 + 1 month = Feb 28/29).
"""

from __future__ import annotations

import contextlib
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import IntEnum, StrEnum
from typing import TYPE_CHECKING

from dateutil.relativedelta import relativedelta

if TYPE_CHECKING:
    from collections.abc import Iterable

LAST_DAY = "last"


class InvalidRecurrenceRule(ValueError):
    """Raised when a rule's configuration cannot describe a repetition."""


class RecurrenceType(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Weekday(IntEnum):
    """Day of week as stored in ``days_of_week`` (0 = Sunday)."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def from_date(cls, day: date) -> Weekday:
        # date.weekday() counts from Monday = 0
        return cls((day.weekday() + 1) % 7)


def parse_days_of_week(value: str | None) -> frozenset[Weekday]:
    """Parse a comma-separated list like ``"1,3,5"``, skipping invalid entries."""
    if not value:
        return frozenset()
    days = set()
    for part in value.split(","):
        part = part.strip()
        if part.isdigit() and 0 <= int(part) <= 6:
            days.add(Weekday(int(part)))
    return frozenset(days)


def format_days_of_week(days: Iterable[Weekday | int]) -> str:
    """Inverse of :func:`parse_days_of_week`, sorted for stable storage."""
    return ",".join(str(int(d)) for d in sorted(set(days)))


def make_rule_id() -> str:
    """Generate a new rule ID."""
    return uuid.uuid4().hex


def _to_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


@dataclass
class RecurrenceRule:
    """A repetition pattern shared by every task in a series.

    Attributes:
        id: Unique identifier (UUID hex).
        type: Daily, weekly, monthly or yearly.
        interval: Repeat every *interval* units. Must be at least 1.
        days_of_week: Weekdays for weekly rules. Empty means "every
            *interval* weeks from the reference date".
        monthly_day: ``"1"``..``"31"`` or ``"last"``; monthly rules only.
        start_date: When the series starts (informational).
        end_date: Inclusive last day on which the series may advance.
        max_occurrences: Declared cap on the series length. Not enforced.
    """

    id: str
    type: RecurrenceType = RecurrenceType.DAILY
    interval: int = 1
    days_of_week: frozenset[Weekday] = field(default_factory=frozenset)
    monthly_day: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    max_occurrences: int | None = None

    def __post_init__(self) -> None:
        with contextlib.suppress(ValueError):
            self.type = RecurrenceType(self.type)
        if isinstance(self.monthly_day, int):
            self.monthly_day = str(self.monthly_day)
        if not isinstance(self.days_of_week, frozenset):
            self.days_of_week = frozenset(Weekday(int(d)) for d in self.days_of_week)

    # -- Validation ------------------------------------------------------------

    def validate(self) -> None:
        """Raise :class:`InvalidRecurrenceRule` if the rule is not usable."""
        if self.type not in tuple(RecurrenceType):
            msg = f"Unknown recurrence type: {self.type!r}"
            raise InvalidRecurrenceRule(msg)
        if self.interval < 1:
            msg = f"Interval must be at least 1, got {self.interval}"
            raise InvalidRecurrenceRule(msg)
        if self.type == RecurrenceType.MONTHLY and self._day_of_month() is None and (
            self.monthly_day != LAST_DAY
        ):
            msg = f"Monthly day must be 1-31 or 'last', got {self.monthly_day!r}"
            raise InvalidRecurrenceRule(msg)
        if self.start_date and self.end_date and self.end_date < self.start_date:
            msg = "End date is before start date"
            raise InvalidRecurrenceRule(msg)
        if self.max_occurrences is not None and self.max_occurrences < 1:
            msg = f"Max occurrences must be positive, got {self.max_occurrences}"
            raise InvalidRecurrenceRule(msg)

    def has_ended(self, today: date) -> bool:
        """True once *today* is past the inclusive end date."""
        return self.end_date is not None and self.end_date < today

    # -- Next occurrence -------------------------------------------------------

    def next_occurrence(self, reference: date | datetime) -> date:
        """Return the next occurrence strictly after *reference*.

        Pure function of the rule and *reference* (truncated to a date).
        Unrecognised types and malformed monthly days fall back to the day
        after *reference*.
        """
        base = _to_date(reference)

        if self.type == RecurrenceType.DAILY:
            return base + timedelta(days=self.interval)

        if self.type == RecurrenceType.WEEKLY:
            return self._next_weekly(base)

        if self.type == RecurrenceType.MONTHLY:
            if self.monthly_day == LAST_DAY:
                return base + relativedelta(months=self.interval, day=31)
            day_of_month = self._day_of_month()
            if day_of_month is not None:
                return base + relativedelta(months=self.interval, day=day_of_month)

        elif self.type == RecurrenceType.YEARLY:
            return base + relativedelta(years=self.interval)

        return base + timedelta(days=1)

    def _next_weekly(self, base: date) -> date:
        if not self.days_of_week:
            return base + timedelta(weeks=self.interval)

        for offset in range(1, 8):
            candidate = base + timedelta(days=offset)
            if Weekday.from_date(candidate) in self.days_of_week:
                return candidate

        # Second pass over the week starting *interval* weeks out.
        week_start = base + timedelta(weeks=self.interval)
        for offset in range(7):
            candidate = week_start + timedelta(days=offset)
            if Weekday.from_date(candidate) in self.days_of_week:
                return candidate
        return base + timedelta(days=1)

    def _day_of_month(self) -> int | None:
        value = (self.monthly_day or "").strip()
        if value.isdigit() and 1 <= int(value) <= 31:
            return int(value)
        return None

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``recurrence_rules`` column order."""
        return (
            self.id,
            str(self.type),
            self.interval,
            format_days_of_week(self.days_of_week),
            self.monthly_day,
            self.start_date.isoformat() if self.start_date else None,
            self.end_date.isoformat() if self.end_date else None,
            self.max_occurrences,
        )

    @classmethod
    def from_row(cls, row: tuple) -> RecurrenceRule:
        """Deserialize from a database row tuple."""
        return cls(
            id=row[0],
            type=row[1],
            interval=row[2],
            days_of_week=parse_days_of_week(row[3]),
            monthly_day=row[4],
            start_date=_parse_date(row[5]),
            end_date=_parse_date(row[6]),
            max_occurrences=row[7],
        )
