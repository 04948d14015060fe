"""Template rule service — validated writes to the rule store.

The generators only ever read rules; these helpers are how rules get created,
edited, switched off and (administratively) removed. Removing a rule never
touches the instances it produced.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.core.dates import parse_iso_date, validate_weekday
from src.core.errors import DateValidationError, NotFoundError
from src.data.db import TemplateDB

if TYPE_CHECKING:
    from src.data.db import Database
    from src.data.models import TemplateRule

logger = logging.getLogger(__name__)

PRIORITIES = ("urgent", "medium", "low")


def _check_priority(priority: str) -> str:
    if priority not in PRIORITIES:
        raise ValueError(f"Unknown priority {priority!r}, expected one of {PRIORITIES}")
    return priority


def _check_window(start_date: str | None, end_date: str | None) -> None:
    if start_date is not None:
        parse_iso_date(start_date)
    if end_date is not None:
        parse_iso_date(end_date)
    if start_date is not None and end_date is not None and end_date < start_date:
        raise DateValidationError(
            f"Template window ends ({end_date}) before it starts ({start_date})"
        )


def create_daily_template(
    db: Database,
    title: str,
    start_time: str,
    end_time: str,
    priority: str,
    assignee_id: str,
    creator_id: str,
    description: str | None = None,
) -> TemplateRule:
    _check_priority(priority)
    with db.transaction():
        return TemplateDB(db).add_daily_template(
            title=title,
            description=description,
            start_time=start_time,
            end_time=end_time,
            priority=priority,
            assignee_id=assignee_id,
            creator_id=creator_id,
        )


def create_weekly_template(
    db: Database,
    title: str,
    weekday: str,
    start_date: str,
    start_time: str,
    end_time: str,
    priority: str,
    assignee_id: str,
    creator_id: str,
    description: str | None = None,
    end_date: str | None = None,
) -> TemplateRule:
    """Create a weekly reminder firing on `weekday` within [start_date, end_date]."""
    validate_weekday(weekday)
    _check_window(start_date, end_date)
    _check_priority(priority)
    with db.transaction():
        return TemplateDB(db).add_weekly_template(
            title=title,
            description=description,
            weekday=weekday,
            start_date=start_date,
            end_date=end_date,
            start_time=start_time,
            end_time=end_time,
            priority=priority,
            assignee_id=assignee_id,
            creator_id=creator_id,
        )


def update_template(db: Database, template_id: int, **changes) -> TemplateRule:
    """Edit a rule. Instances catch up on the next generation call.

    Raises:
        NotFoundError: no rule with that id.
    """
    if "weekday" in changes:
        validate_weekday(changes["weekday"])
    if "priority" in changes:
        _check_priority(changes["priority"])

    with db.transaction():
        templates = TemplateDB(db)
        current = templates.get_template(template_id)
        if current is None:
            raise NotFoundError(f"Template {template_id} not found")
        _check_window(
            changes.get("start_date", current.start_date),
            changes.get("end_date", current.end_date),
        )
        return templates.update_template(template_id, **changes)


def set_template_active(db: Database, template_id: int, active: bool) -> TemplateRule:
    return update_template(db, template_id, active=active)


def delete_template(db: Database, template_id: int) -> bool:
    with db.transaction():
        return TemplateDB(db).delete_template(template_id)
