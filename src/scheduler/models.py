"""Sweep trigger and outcome models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime


def make_run_id() -> str:
    """Generate a new sweep run ID."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class SweepTrigger:
    """Describes one firing of the maintenance sweep.

    Owned by whoever fires the sweep (the scheduler, a script, a test), so
    the runner itself never reads the wall clock.

    Attributes:
        fired_at: Aware instant the sweep was requested.
        run_id: Unique identifier (UUID hex) used in log lines.
    """

    fired_at: datetime
    run_id: str = field(default_factory=make_run_id)

    def __post_init__(self) -> None:
        if self.fired_at.tzinfo is None:
            object.__setattr__(self, "fired_at", self.fired_at.replace(tzinfo=UTC))

    @classmethod
    def now(cls) -> SweepTrigger:
        return cls(fired_at=datetime.now(UTC))

    @classmethod
    def for_date(cls, day: date) -> SweepTrigger:
        """Trigger whose UTC date is *day* (midnight UTC)."""
        return cls(fired_at=datetime(day.year, day.month, day.day, tzinfo=UTC))

    @property
    def as_of(self) -> date:
        """The UTC calendar date used for due/overdue comparisons."""
        return self.fired_at.astimezone(UTC).date()


@dataclass
class MaintenanceRun:
    """Outcome of one sweep. Not persisted; logged by the caller.

    Attributes:
        run_id: The trigger's run ID.
        started_at: When the sweep started.
        finished_at: When the sweep finished (None while running).
        tasks_scanned: Due recurring candidates found.
        tasks_advanced: Candidates completed successfully.
        errors: Candidates whose completion raised.
        overdue_count: Open tasks due before the sweep date.
        failed_phases: Phases aborted by a query failure.
        skipped: True when another sweep was already running.
    """

    run_id: str
    started_at: datetime
    finished_at: datetime | None = None
    tasks_scanned: int = 0
    tasks_advanced: int = 0
    errors: int = 0
    overdue_count: int = 0
    failed_phases: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors and not self.failed_phases and not self.skipped

    def summary(self) -> str:
        """One-line description for logs."""
        if self.skipped:
            return f"run {self.run_id} skipped (sweep already in progress)"
        text = (
            f"run {self.run_id}: scanned={self.tasks_scanned}"
            f" advanced={self.tasks_advanced} errors={self.errors}"
            f" overdue={self.overdue_count}"
        )
        if self.failed_phases:
            text += f" failed_phases={','.join(self.failed_phases)}"
        return text
