"""
OpsBoard Recurrence Engine — Hourly Sweep Trigger.

Registers the editorial prep sweep on a fixed hourly cron (default: five
minutes past every hour). Running hourly rather than daily means an event's
prep start date is picked up promptly even across daylight-saving changes.

A failed run is logged and left alone: the next tick retries the whole batch,
which is safe because every generator is idempotent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from src.config import settings
from src.core.sweep import sweep_due_events

if TYPE_CHECKING:
    from apscheduler.schedulers.base import BaseScheduler

    from src.core.contracts import SweepResult
    from src.data.db import Database
    from src.ports.clock_port import ClockPort

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "communication.ensure_prep_tasks_for_due_events"


def run_sweep_job(db: Database, clock: ClockPort) -> SweepResult | None:
    """Job body: one sweep; failures are logged, not raised into the scheduler."""
    try:
        return sweep_due_events(db, clock)
    except Exception:
        logger.exception("Hourly sweep failed and was rolled back; retrying next tick")
        return None


def register_sweep(
    scheduler: BaseScheduler,
    db: Database,
    clock: ClockPort,
    minute: int | None = None,
) -> None:
    """Add the hourly sweep job to an existing scheduler."""
    if minute is None:
        minute = settings.SWEEP_MINUTE

    scheduler.add_job(
        run_sweep_job,
        trigger=CronTrigger(minute=minute, timezone=settings.TIMEZONE),
        args=(db, clock),
        id=SWEEP_JOB_ID,
        name="Editorial prep sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        "Editorial prep sweep scheduled hourly at minute %02d (%s)",
        minute, settings.TIMEZONE,
    )


def build_scheduler(db: Database, clock: ClockPort) -> BlockingScheduler:
    """Create a blocking scheduler with the sweep registered."""
    scheduler = BlockingScheduler(timezone=settings.TIMEZONE)
    register_sweep(scheduler, db, clock)
    return scheduler
