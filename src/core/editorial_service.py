"""Editorial event service — event writes that may apply the prep checklist.

Creating or updating an event can run the anchor task generator in the same
transaction (apply_template_now), so the event row and its tasks land
together. Deleting an event removes its communication tasks with it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.core.anchor_tasks import ensure_anchor_tasks
from src.core.contracts import EventDeleteResult, EventWriteResult
from src.core.dates import parse_iso_date
from src.core.errors import NotFoundError
from src.data.db import EditorialDB

if TYPE_CHECKING:
    from src.data.db import Database
    from src.ports.clock_port import ClockPort

logger = logging.getLogger(__name__)


def _clean(text: str | None) -> str | None:
    """Trim; an empty result means "unset"."""
    if text is None:
        return None
    text = text.strip()
    return text or None


def create_editorial_event(
    db: Database,
    clock: ClockPort,
    actor_id: str,
    title: str,
    prep_start_date: str,
    start_date: str,
    owner_profile_id: str | None,
    category: str = "interne",
    priority: str = "moyen",
    status: str = "a_preparer",
    end_date: str | None = None,
    backup_owner_profile_id: str | None = None,
    auto_create_template_tasks: bool = False,
    notes: str | None = None,
    apply_template_now: bool = False,
) -> EventWriteResult:
    """Insert an event; optionally generate its checklist right away."""
    parse_iso_date(prep_start_date)
    parse_iso_date(start_date)
    end_date = _clean(end_date)
    if end_date is not None:
        parse_iso_date(end_date)

    with db.transaction():
        editorial = EditorialDB(db)
        event = editorial.add_event(
            title=title.strip(),
            category=category,
            prep_start_date=prep_start_date,
            start_date=start_date,
            end_date=end_date,
            priority=priority,
            status=status,
            owner_profile_id=owner_profile_id,
            backup_owner_profile_id=backup_owner_profile_id,
            auto_create_template_tasks=auto_create_template_tasks,
            notes=_clean(notes),
        )

        template_result = None
        if apply_template_now:
            template_result = ensure_anchor_tasks(db, event, actor_id, clock)

    return EventWriteResult(event_id=event.id, template_result=template_result)


def update_editorial_event(
    db: Database,
    clock: ClockPort,
    actor_id: str,
    event_id: int,
    apply_template_now: bool = False,
    **changes,
) -> EventWriteResult:
    """Patch an event's fields; optionally re-run the checklist afterwards.

    Only keys passed in `changes` are written. An empty end_date or notes
    clears the field; a blank title keeps the current one.

    Raises:
        NotFoundError: no event with that id.
    """
    for key in ("prep_start_date", "start_date"):
        if changes.get(key) is not None:
            parse_iso_date(changes[key])
    if "end_date" in changes:
        changes["end_date"] = _clean(changes["end_date"])
        if changes["end_date"] is not None:
            parse_iso_date(changes["end_date"])
    if "notes" in changes:
        changes["notes"] = _clean(changes["notes"])
    if "title" in changes:
        title = _clean(changes.pop("title"))
        if title:
            changes["title"] = title

    with db.transaction():
        editorial = EditorialDB(db)
        if editorial.get_event(event_id) is None:
            raise NotFoundError(f"Editorial event {event_id} not found")

        editorial.update_event(event_id, changes)

        template_result = None
        if apply_template_now:
            refreshed = editorial.get_event(event_id)
            template_result = ensure_anchor_tasks(db, refreshed, actor_id, clock)

    return EventWriteResult(event_id=event_id, template_result=template_result)


def delete_editorial_event(db: Database, event_id: int) -> EventDeleteResult:
    """Delete an event and every communication task attached to it."""
    with db.transaction():
        editorial = EditorialDB(db)
        if editorial.get_event(event_id) is None:
            raise NotFoundError(f"Editorial event {event_id} not found")

        tasks = editorial.list_tasks(event_id)
        for task in tasks:
            editorial.delete_task(task.id)
        editorial.delete_event(event_id)

    logger.info("Editorial event #%d deleted with %d task(s)", event_id, len(tasks))
    return EventDeleteResult(deleted_event_id=event_id, deleted_tasks=len(tasks))
