"""Scheduled sweep — applies the anchor checklist to every due event.

An event is due once its prep start date has arrived, however long ago that
was. Only events with auto_create_template_tasks set get tasks; the rest are
counted as scanned and skipped.

By default the whole run is one transaction: an error on any event rolls back
the tasks already created for earlier events in the same run and propagates.
The next hourly run starts over, which is safe because the generator is
idempotent. With isolate_events=True each event gets its own savepoint, a
failing event is logged and counted, and the others still commit.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.core.anchor_tasks import ensure_anchor_tasks
from src.core.contracts import SweepResult
from src.data.db import EditorialDB

if TYPE_CHECKING:
    from src.data.db import Database
    from src.ports.clock_port import ClockPort

logger = logging.getLogger(__name__)


def sweep_due_events(
    db: Database,
    clock: ClockPort,
    isolate_events: bool | None = None,
) -> SweepResult:
    """Run one sweep over all events whose preparation has started."""
    if isolate_events is None:
        from src.config import settings
        isolate_events = settings.SWEEP_ISOLATE_EVENTS

    today = clock.today()
    result = SweepResult(today=today, failed=0 if isolate_events else None)

    with db.transaction():
        candidates = EditorialDB(db).list_events_prepping_by(today)

        for event in candidates:
            result.scanned += 1
            if not event.auto_create_template_tasks:
                continue

            # Owner authors the tasks; backup stands in when there is no owner
            actor_id = event.owner_profile_id or event.backup_owner_profile_id
            if not isolate_events:
                outcome = ensure_anchor_tasks(db, event, actor_id, clock)
            else:
                try:
                    with db.savepoint():
                        outcome = ensure_anchor_tasks(db, event, actor_id, clock)
                except Exception:
                    logger.exception("Sweep: event #%d failed, skipped", event.id)
                    result.failed += 1
                    continue

            result.created += outcome.created_count
            result.patched += 1 if outcome.patched_template_applied_at else 0

    logger.info(
        "Sweep %s: scanned %d, created %d, patched %d, failed %d",
        today, result.scanned, result.created, result.patched, result.failed or 0,
    )
    return result
