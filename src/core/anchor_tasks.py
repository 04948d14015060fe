"""Anchor task-set generator — the fixed editorial prep checklist.

Every editorial event gets the same seven communication tasks, each due at an
offset from one of the event's two anchors: the prep start date or the
go-live ("post") date. A due date that would land before prep starts is
pulled forward to the prep start date.

Duplicates are detected by title only: a task renamed by a user no longer
counts, and the next run recreates the original title.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.core.contracts import AnchorTasksResult
from src.core.dates import add_days, parse_iso_date
from src.core.errors import NoAssignableOwnerError
from src.data.db import EditorialDB

if TYPE_CHECKING:
    from src.data.db import Database
    from src.data.models import EditorialEvent
    from src.ports.clock_port import ClockPort

logger = logging.getLogger(__name__)

PREP = "prep"
POST = "post"


@dataclass(frozen=True)
class AnchorTaskSpec:
    """One checklist line: a title due `offset_days` after an anchor."""

    title: str
    anchor: str          # "prep" | "post"
    offset_days: int


ANCHOR_TASK_SPECS: tuple[AnchorTaskSpec, ...] = (
    AnchorTaskSpec("Brief", PREP, 0),
    AnchorTaskSpec("Angles", PREP, 2),
    AnchorTaskSpec("Copy", POST, -7),
    AnchorTaskSpec("Visuels", POST, -5),
    AnchorTaskSpec("Validation", POST, -2),
    AnchorTaskSpec("Programmation", POST, -1),
    AnchorTaskSpec("REX", POST, 2),
)


def clamp_to_prep_start(due_date: str, prep_start_date: str) -> str:
    return prep_start_date if due_date < prep_start_date else due_date


def compute_due_dates(prep_start_date: str, start_date: str) -> list[tuple[str, str]]:
    """Return (title, effective due date) for all seven tasks, in order."""
    parse_iso_date(prep_start_date)
    parse_iso_date(start_date)
    anchors = {PREP: prep_start_date, POST: start_date}
    return [
        (
            spec.title,
            clamp_to_prep_start(
                add_days(anchors[spec.anchor], spec.offset_days), prep_start_date,
            ),
        )
        for spec in ANCHOR_TASK_SPECS
    ]


def resolve_assignee(event: EditorialEvent) -> str:
    """Owner first, backup owner second.

    Raises NoAssignableOwnerError when the event has neither.
    """
    assignee = event.owner_profile_id or event.backup_owner_profile_id
    if not assignee:
        raise NoAssignableOwnerError(
            f"Editorial event #{event.id} has no owner or backup owner to assign tasks to"
        )
    return assignee


def ensure_anchor_tasks(
    db: Database,
    event: EditorialEvent,
    actor_id: str,
    clock: ClockPort,
) -> AnchorTasksResult:
    """Create whichever of the seven checklist tasks the event is missing.

    Once all seven titles exist and the event was never stamped,
    template_applied_at is set to clock.today(). The stamp is written once and
    never cleared, even if tasks are deleted later.

    Args:
        db: Store holding editorial events and communication tasks.
        event: The event to fill in (as read by the caller).
        actor_id: Profile recorded as creator of the new tasks.
        clock: Source of "today" for the applied-at stamp.
    """
    specs = compute_due_dates(event.prep_start_date, event.start_date)
    assignee_id = resolve_assignee(event)

    result = AnchorTasksResult()
    with db.transaction():
        editorial = EditorialDB(db)
        existing_titles = {task.title for task in editorial.list_tasks(event.id)}

        for title, due_date in specs:
            if title in existing_titles:
                continue
            editorial.add_task(
                event_id=event.id,
                title=title,
                assignee_id=assignee_id,
                due_date=due_date,
                status="todo",
                checklist=[],
                created_by_profile_id=actor_id,
            )
            existing_titles.add(title)
            result.created_count += 1

        all_present = all(title in existing_titles for title, _ in specs)
        if all_present and not event.template_applied_at:
            applied_on = clock.today()
            editorial.set_template_applied_at(event.id, applied_on)
            event.template_applied_at = applied_on
            result.patched_template_applied_at = True

    logger.info(
        "Anchor tasks for event #%d: %d created, stamped=%s",
        event.id, result.created_count, result.patched_template_applied_at,
    )
    return result
