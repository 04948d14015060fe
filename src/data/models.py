"""
OpsBoard Recurrence Engine — Data Models.

Template rules are the declarative side; task instances are the concrete,
dated work items materialized from them. Editorial events and their
communication tasks belong to the editorial calendar, whose prep checklist
the anchor generator fills in.
"""

from __future__ import annotations

from dataclasses import dataclass, field

KIND_DAILY = "daily_block"
KIND_WEEKLY = "weekly_reminder"


@dataclass
class TemplateRule:
    """A persisted recurrence rule.

    daily_block rules fire every day; weekly_reminder rules fire on one
    weekday inside an inclusive [start_date, end_date] window.
    """

    id: int
    kind: str                         # "daily_block" | "weekly_reminder"
    title: str
    start_time: str                   # local wall clock, e.g. "09:00"
    end_time: str
    priority: str                     # "urgent" | "medium" | "low"
    assignee_id: str
    creator_id: str
    description: str | None = None
    weekday: str | None = None        # weekly only: "mon" .. "sun"
    start_date: str | None = None     # weekly only, ISO date
    end_date: str | None = None       # weekly only, inclusive, None = open
    active: bool = field(default=True)


@dataclass
class TaskInstance:
    """A concrete dated work item.

    template_id is a weak back-reference: it names the rule that produced the
    instance, but deleting that rule leaves the instance untouched.
    """

    id: int
    title: str
    date: str                         # ISO date YYYY-MM-DD
    start_time: str
    end_time: str
    priority: str
    assignee_id: str
    creator_id: str
    status: str = "todo"
    description: str | None = None
    due_date: str | None = None
    period: str = "none"              # "daily" | "weekly" | "monthly" | "none"
    entry_type: str = "task"          # "task" | "daily_block"
    is_recurring_instance: bool = False
    template_id: int | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class EditorialEvent:
    """An editorial calendar entry with two anchor dates.

    prep_start_date is when preparation officially starts; start_date is the
    go-live ("post") date.
    """

    id: int
    title: str
    prep_start_date: str
    start_date: str
    owner_profile_id: str | None
    category: str = "interne"
    priority: str = "moyen"
    status: str = "a_preparer"
    end_date: str | None = None
    backup_owner_profile_id: str | None = None
    auto_create_template_tasks: bool = False
    template_applied_at: str | None = None   # stamped once, never cleared
    notes: str | None = None


@dataclass
class CommunicationTask:
    """A follow-up task attached to an editorial event."""

    id: int
    event_id: int
    title: str
    assignee_id: str
    due_date: str
    created_by_profile_id: str
    status: str = "todo"
    checklist: list[dict] = field(default_factory=list)
