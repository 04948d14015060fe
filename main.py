"""
OpsBoard Recurrence Engine — Entry Point.

    python main.py serve                         # hourly sweep, runs forever
    python main.py sweep [--today 2024-03-05]    # one sweep now
    python main.py daily 2024-03-01 2024-03-07   # materialize daily blocks
    python main.py weekly 2024-03-01 2024-03-31  # reconcile weekly reminders
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from src.config import settings

logger = logging.getLogger("opsboard")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="opsboard-recurrence",
        description="Materialize recurring tasks and editorial prep checklists.",
    )
    p.add_argument(
        "--db",
        help=f"SQLite database path (default: {settings.DATABASE_PATH}).",
        default=None,
    )
    p.add_argument(
        "--today",
        help=f"Pin 'today' to YYYY-MM-DD instead of the {settings.TIMEZONE} clock.",
        default=None,
    )
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the hourly editorial sweep until interrupted.")
    sub.add_parser("sweep", help="Run one editorial sweep and print its counts.")

    for name, help_text in (
        ("daily", "Create daily block instances for a date range."),
        ("weekly", "Reconcile weekly reminder instances for a date range."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("start_date", help="First day, YYYY-MM-DD (inclusive).")
        cmd.add_argument("end_date", help="Last day, YYYY-MM-DD (inclusive).")

    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = parse_args(argv)

    from src.adapters.clocks import FixedClock, ZoneClock
    from src.adapters.profile_scope import AllScope
    from src.core.errors import EngineError
    from src.data.db import Database

    db = Database(args.db)
    try:
        clock = FixedClock(args.today) if args.today else ZoneClock()

        if args.command == "serve":
            from src.core.scheduler import build_scheduler

            logger.info("Starting OpsBoard recurrence engine...")
            scheduler = build_scheduler(db, clock)
            try:
                scheduler.start()
            except (KeyboardInterrupt, SystemExit):
                logger.info("Scheduler stopped")
            return 0

        if args.command == "sweep":
            from src.core.sweep import sweep_due_events

            result = sweep_due_events(db, clock)
        elif args.command == "daily":
            from src.core.daily_generator import generate_daily_instances

            result = generate_daily_instances(
                db, args.start_date, args.end_date, scope=AllScope(),
            )
        else:
            from src.core.weekly_reconciler import generate_weekly_instances

            result = generate_weekly_instances(
                db, args.start_date, args.end_date, scope=AllScope(),
            )
    except EngineError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    finally:
        db.close()

    print(json.dumps(result.model_dump(by_alias=True), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
