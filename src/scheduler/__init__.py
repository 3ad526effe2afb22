"""Task maintenance — sweep models, runner, and periodic scheduling."""

from src.scheduler.engine import SchedulerEngine
from src.scheduler.models import MaintenanceRun, SweepTrigger
from src.scheduler.runner import MaintenanceRunner

__all__ = [
    "MaintenanceRun",
    "MaintenanceRunner",
    "SchedulerEngine",
    "SweepTrigger",
]
