"""Tests for src.core.sweep — hourly editorial prep sweep."""

import pytest

from src.adapters.clocks import FixedClock
from src.core.errors import NoAssignableOwnerError
from src.core.sweep import sweep_due_events


def _event(editorial_db, title, prep, post, **overrides):
    fields = dict(
        title=title, prep_start_date=prep, start_date=post,
        owner_profile_id="p-alice", auto_create_template_tasks=True,
    )
    fields.update(overrides)
    return editorial_db.add_event(**fields)


class TestSweepDueEvents:
    def test_counts(self, db, editorial_db, clock):
        _event(editorial_db, "Ancient", "2019-05-01", "2019-05-20")
        _event(editorial_db, "Due today", "2024-03-05", "2024-03-20")
        _event(editorial_db, "Manual", "2024-03-01", "2024-03-10",
               auto_create_template_tasks=False)
        _event(editorial_db, "Future", "2024-03-06", "2024-03-20")

        result = sweep_due_events(db, clock)

        assert result.today == "2024-03-05"
        assert result.scanned == 3
        assert result.created == 14
        assert result.patched == 2
        assert result.failed is None

    def test_skips_events_without_flag(self, db, editorial_db, clock):
        manual = _event(editorial_db, "Manual", "2024-03-01", "2024-03-10",
                        auto_create_template_tasks=False)
        sweep_due_events(db, clock)
        assert editorial_db.list_tasks(manual.id) == []

    def test_second_run_creates_nothing(self, db, editorial_db, clock):
        _event(editorial_db, "Soldes", "2024-03-01", "2024-03-10")
        sweep_due_events(db, clock)

        again = sweep_due_events(db, clock)

        assert (again.scanned, again.created, again.patched) == (1, 0, 0)

    def test_owner_is_actor(self, db, editorial_db, clock):
        event = _event(editorial_db, "Soldes", "2024-03-01", "2024-03-10")
        sweep_due_events(db, clock)
        assert {t.created_by_profile_id for t in editorial_db.list_tasks(event.id)} == {"p-alice"}

    def test_event_becomes_due_later(self, db, editorial_db):
        event = _event(editorial_db, "Rentrée", "2024-03-06", "2024-03-20")
        clock = FixedClock("2024-03-05")
        assert sweep_due_events(db, clock).scanned == 0

        clock.set("2024-03-06")
        result = sweep_due_events(db, clock)

        assert result.created == 7
        assert editorial_db.get_event(event.id).template_applied_at == "2024-03-06"

    def test_failure_rolls_back_whole_run(self, db, editorial_db, clock):
        first = _event(editorial_db, "Fine", "2024-03-01", "2024-03-10")
        _event(editorial_db, "Orphan", "2024-03-02", "2024-03-10", owner_profile_id=None)

        with pytest.raises(NoAssignableOwnerError):
            sweep_due_events(db, clock, isolate_events=False)

        assert editorial_db.list_tasks(first.id) == []
        assert editorial_db.get_event(first.id).template_applied_at is None

    def test_isolated_mode_keeps_other_events(self, db, editorial_db, clock):
        first = _event(editorial_db, "Fine", "2024-03-01", "2024-03-10")
        orphan = _event(editorial_db, "Orphan", "2024-03-02", "2024-03-10",
                        owner_profile_id=None)
        last = _event(editorial_db, "Also fine", "2024-03-03", "2024-03-12")

        result = sweep_due_events(db, clock, isolate_events=True)

        assert result.failed == 1
        assert result.created == 14
        assert len(editorial_db.list_tasks(first.id)) == 7
        assert editorial_db.list_tasks(orphan.id) == []
        assert len(editorial_db.list_tasks(last.id)) == 7

    def test_default_mode_comes_from_settings(self, db, editorial_db, clock, monkeypatch):
        from src.config import settings

        monkeypatch.setattr(settings, "SWEEP_ISOLATE_EVENTS", True)
        _event(editorial_db, "Orphan", "2024-03-02", "2024-03-10", owner_profile_id=None)

        assert sweep_due_events(db, clock).failed == 1

    def test_wire_names(self, db, clock):
        dumped = sweep_due_events(db, clock, isolate_events=False).model_dump(by_alias=True)
        assert dumped == {"today": "2024-03-05", "scanned": 0, "created": 0, "patched": 0}

    def test_wire_names_with_isolation(self, db, clock):
        dumped = sweep_due_events(db, clock, isolate_events=True).model_dump(by_alias=True)
        assert dumped == {
            "today": "2024-03-05", "scanned": 0, "created": 0, "patched": 0, "failed": 0,
        }
