#!/usr/bin/env python3
"""Run a single task maintenance sweep and print its outcome.

Usage examples:
    # Sweep as of now (UTC)
    uv run python scripts/run_maintenance.py

    # Sweep as if it were a given day
    uv run python scripts/run_maintenance.py --as-of 2026-03-01

    # Cap the number of due tasks handled
    uv run python scripts/run_maintenance.py --limit 50
"""

import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.app import create_app
from src.config import settings
from src.scheduler.models import SweepTrigger
from src.scheduler.runner import MaintenanceRunner


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one task maintenance sweep")
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        help="Sweep date (YYYY-MM-DD, UTC). Defaults to now.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.maintenance_candidate_limit,
        help="Maximum due tasks to process (0 = all)",
    )
    return parser.parse_args(argv)


async def _sweep(args: argparse.Namespace) -> int:
    app = create_app()
    runner = MaintenanceRunner(app.store, app.todos, candidate_limit=args.limit or None)
    trigger = SweepTrigger.for_date(args.as_of) if args.as_of else SweepTrigger.now()
    outcome = await runner.run(trigger)
    print(outcome.summary())
    return 0 if outcome.ok else 1


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level),
    )
    return asyncio.run(_sweep(_parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
