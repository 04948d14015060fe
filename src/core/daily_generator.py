"""Daily instance generator — expands daily_block rules over a date range.

Create-only: an instance is added when no instance for the rule's assignee on
that day carries the rule's id and current title. Instances that drifted from
their rule (new title, new times) are never patched or removed here; the
weekly reconciler is the one that keeps instances in full sync.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.core.contracts import DailyGenerationResult
from src.core.dates import iter_days, validate_range
from src.data.db import TaskDB, TemplateDB
from src.data.models import KIND_DAILY

if TYPE_CHECKING:
    from src.data.db import Database
    from src.ports.scope_port import ScopePort

logger = logging.getLogger(__name__)


def generate_daily_instances(
    db: Database,
    start_date: str,
    end_date: str,
    scope: ScopePort | None = None,
    max_days: int | None = None,
) -> DailyGenerationResult:
    """Materialize active daily templates for every day in the range.

    Args:
        db: Store holding rules and instances.
        start_date: First day, inclusive (YYYY-MM-DD).
        end_date: Last day, inclusive. Ordering is the caller's job; an
            inverted range just yields no days.
        scope: Visibility filter; None sees every rule.
        max_days: Range bound, defaults to settings.MAX_RANGE_DAYS.

    Returns:
        DailyGenerationResult with the ids of created instances.
    """
    if max_days is None:
        from src.config import settings
        max_days = settings.MAX_RANGE_DAYS

    validate_range(start_date, end_date, max_days=max_days, require_ordered=False)

    assignee_ids = scope.visible_assignee_ids() if scope is not None else None
    result = DailyGenerationResult()

    with db.transaction():
        templates = TemplateDB(db).list_templates(
            KIND_DAILY, active_only=True, assignee_ids=assignee_ids,
        )
        tasks = TaskDB(db)

        for day in iter_days(start_date, end_date):
            for template in templates:
                existing = tasks.find_by_assignee_date(template.assignee_id, day)
                if any(
                    inst.template_id == template.id and inst.title == template.title
                    for inst in existing
                ):
                    continue

                instance = tasks.add_instance(
                    title=template.title,
                    description=template.description,
                    date=day,
                    start_time=template.start_time,
                    end_time=template.end_time,
                    priority=template.priority,
                    status="todo",
                    assignee_id=template.assignee_id,
                    creator_id=template.creator_id,
                    period="daily",
                    entry_type="daily_block",
                    is_recurring_instance=True,
                    template_id=template.id,
                )
                result.created_ids.append(instance.id)

    result.created_count = len(result.created_ids)
    logger.info(
        "Daily generation %s..%s: %d created from %d template(s)",
        start_date, end_date, result.created_count, len(templates),
    )
    return result
