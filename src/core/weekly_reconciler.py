"""Weekly instance reconciler — keeps weekly_reminder instances in sync.

For every (rule, day) pair in the requested range, the set of recurring
weekly instances is brought in line with what the rule currently says:

- the rule should not fire that day -> every instance is deleted
- it should fire and nothing exists -> one instance is created
- it should fire and instances exist -> the first one (store order) is kept
  as canonical, any others are deleted, and the canonical one is patched
  field-by-field where it drifted from the rule

Two concurrent calls may both insert for the same pair; the next call heals
the duplicate. Calling twice with unchanged rules yields all-zero counts.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.core.contracts import WeeklyReconcileResult
from src.core.dates import iter_days, validate_range, weekday_of
from src.data.db import TaskDB, TemplateDB
from src.data.models import KIND_WEEKLY

if TYPE_CHECKING:
    from src.data.db import Database
    from src.data.models import TaskInstance, TemplateRule
    from src.ports.scope_port import ScopePort

logger = logging.getLogger(__name__)

# Fields compared between a rule and its canonical instance
_SYNCED_FIELDS = (
    "title", "description", "priority", "start_time", "end_time",
    "due_date", "entry_type",
)


def should_exist(template: TemplateRule, day: str) -> bool:
    """True when the weekly rule fires on the given ISO date."""
    if not template.active:
        return False
    if weekday_of(day) != template.weekday:
        return False
    if template.start_date is None or day < template.start_date:
        return False
    return template.end_date is None or day <= template.end_date


def _desired_fields(template: TemplateRule, day: str) -> dict:
    return {
        "title": template.title,
        "description": template.description,
        "priority": template.priority,
        "start_time": template.start_time,
        "end_time": template.end_time,
        "due_date": day,
        "entry_type": "task",
    }


def diff_instance(instance: TaskInstance, template: TemplateRule, day: str) -> dict:
    """Return only the fields whose instance value differs from the rule."""
    desired = _desired_fields(template, day)
    return {
        name: desired[name]
        for name in _SYNCED_FIELDS
        if getattr(instance, name) != desired[name]
    }


def generate_weekly_instances(
    db: Database,
    start_date: str,
    end_date: str,
    scope: ScopePort | None = None,
    max_days: int | None = None,
) -> WeeklyReconcileResult:
    """Reconcile weekly reminder instances over an inclusive date range.

    Raises:
        DateValidationError: a bound does not parse or end_date < start_date.
        DateRangeTooLargeError: the range exceeds max_days.
    """
    if max_days is None:
        from src.config import settings
        max_days = settings.MAX_RANGE_DAYS

    validate_range(start_date, end_date, max_days=max_days)

    assignee_ids = scope.visible_assignee_ids() if scope is not None else None
    result = WeeklyReconcileResult()

    with db.transaction():
        # Inactive rules are included: their instances must be removed
        templates = TemplateDB(db).list_templates(KIND_WEEKLY, assignee_ids=assignee_ids)
        tasks = TaskDB(db)

        for day in iter_days(start_date, end_date):
            for template in templates:
                _reconcile_day(tasks, template, day, result)

    result.created_count = len(result.created_ids)
    result.updated_count = len(result.updated_ids)
    result.deleted_count = len(result.deleted_ids)
    logger.info(
        "Weekly reconcile %s..%s: %d created, %d updated, %d deleted",
        start_date, end_date,
        result.created_count, result.updated_count, result.deleted_count,
    )
    return result


def _reconcile_day(
    tasks: TaskDB,
    template: TemplateRule,
    day: str,
    result: WeeklyReconcileResult,
) -> None:
    existing = tasks.find_recurring(template.id, day, period="weekly")

    if not should_exist(template, day):
        for instance in existing:
            tasks.delete_instance(instance.id)
            result.deleted_ids.append(instance.id)
        return

    if not existing:
        instance = tasks.add_instance(
            title=template.title,
            description=template.description,
            date=day,
            due_date=day,
            start_time=template.start_time,
            end_time=template.end_time,
            priority=template.priority,
            status="todo",
            assignee_id=template.assignee_id,
            creator_id=template.creator_id,
            period="weekly",
            entry_type="task",
            is_recurring_instance=True,
            template_id=template.id,
        )
        result.created_ids.append(instance.id)
        return

    canonical, *duplicates = existing
    for duplicate in duplicates:
        tasks.delete_instance(duplicate.id)
        result.deleted_ids.append(duplicate.id)
    if duplicates:
        logger.warning(
            "Template #%d on %s had %d duplicate instance(s), kept #%d",
            template.id, day, len(duplicates), canonical.id,
        )

    changes = diff_instance(canonical, template, day)
    if changes:
        tasks.patch_instance(canonical.id, changes)
        result.updated_ids.append(canonical.id)
