"""Tests for src.core.weekly_reconciler — create/update/delete sync."""

from unittest.mock import patch

import pytest

from src.adapters.profile_scope import ProfileScope
from src.core.errors import DateRangeTooLargeError, DateValidationError
from src.core.weekly_reconciler import (
    diff_instance,
    generate_weekly_instances,
    should_exist,
)
from src.data.db import TaskDB

RANGE = ("2024-01-01", "2024-01-15")


def _duplicate(task_db, template, day):
    return task_db.add_instance(
        title=template.title, date=day, due_date=day,
        start_time=template.start_time, end_time=template.end_time,
        priority=template.priority, assignee_id=template.assignee_id,
        creator_id=template.creator_id, period="weekly", entry_type="task",
        is_recurring_instance=True, template_id=template.id,
    )


class TestShouldExist:
    def test_matching_weekday_inside_window(self, weekly_template):
        assert should_exist(weekly_template, "2024-01-08") is True

    def test_wrong_weekday(self, weekly_template):
        assert should_exist(weekly_template, "2024-01-09") is False

    def test_before_window(self, weekly_template):
        assert should_exist(weekly_template, "2023-12-25") is False

    def test_end_date_inclusive(self, template_db, weekly_template):
        rule = template_db.update_template(weekly_template.id, end_date="2024-01-08")
        assert should_exist(rule, "2024-01-08") is True
        assert should_exist(rule, "2024-01-15") is False

    def test_inactive(self, template_db, weekly_template):
        rule = template_db.set_active(weekly_template.id, False)
        assert should_exist(rule, "2024-01-08") is False


class TestCreate:
    def test_creates_each_matching_monday(self, db, task_db, weekly_template):
        result = generate_weekly_instances(db, *RANGE)
        assert result.created_count == 3
        assert result.updated_count == 0
        assert result.deleted_count == 0
        created = task_db.list_by_template(weekly_template.id)
        assert [i.date for i in created] == ["2024-01-01", "2024-01-08", "2024-01-15"]

    def test_instance_fields(self, db, task_db, weekly_template):
        generate_weekly_instances(db, "2024-01-01", "2024-01-01")
        [inst] = task_db.list_by_template(weekly_template.id)
        assert inst.due_date == "2024-01-01"
        assert inst.period == "weekly"
        assert inst.entry_type == "task"
        assert inst.is_recurring_instance is True
        assert inst.status == "todo"
        assert inst.title == "Weekly report"

    def test_idempotent(self, db, weekly_template):
        generate_weekly_instances(db, *RANGE)
        again = generate_weekly_instances(db, *RANGE)
        assert (again.created_count, again.updated_count, again.deleted_count) == (0, 0, 0)
        assert again.created_ids == again.updated_ids == again.deleted_ids == []

    def test_scope_limits_templates(self, db, weekly_template):
        scope = ProfileScope("p-bob", "stagiaire")
        assert generate_weekly_instances(db, *RANGE, scope=scope).created_count == 0


class TestDelete:
    def test_deactivation_deletes(self, db, template_db, weekly_template):
        generate_weekly_instances(db, *RANGE)
        template_db.set_active(weekly_template.id, False)

        result = generate_weekly_instances(db, *RANGE)

        assert result.deleted_count == 3
        assert result.created_count == 0

    def test_narrowed_window_deletes_outside(self, db, template_db, task_db, weekly_template):
        generate_weekly_instances(db, *RANGE)
        template_db.update_template(weekly_template.id, end_date="2024-01-07")

        result = generate_weekly_instances(db, *RANGE)

        assert result.deleted_count == 2
        assert [i.date for i in task_db.list_by_template(weekly_template.id)] == ["2024-01-01"]

    def test_weekday_change_moves_instances(self, db, template_db, task_db, weekly_template):
        generate_weekly_instances(db, *RANGE)
        template_db.update_template(weekly_template.id, weekday="wed")

        result = generate_weekly_instances(db, *RANGE)

        assert result.deleted_count == 3
        assert result.created_count == 2
        dates = [i.date for i in task_db.list_by_template(weekly_template.id)]
        assert dates == ["2024-01-03", "2024-01-10"]

    def test_outside_range_untouched(self, db, template_db, task_db, weekly_template):
        generate_weekly_instances(db, "2024-01-01", "2024-01-22")
        template_db.set_active(weekly_template.id, False)

        result = generate_weekly_instances(db, *RANGE)

        assert result.deleted_count == 3
        assert [i.date for i in task_db.list_by_template(weekly_template.id)] == ["2024-01-22"]


class TestUpdate:
    def test_title_drift_patched(self, db, template_db, weekly_template):
        generate_weekly_instances(db, *RANGE)
        template_db.update_template(weekly_template.id, title="Weekly status")

        result = generate_weekly_instances(db, *RANGE)

        assert (result.created_count, result.updated_count, result.deleted_count) == (0, 3, 0)

    def test_only_changed_fields_written(self, db, template_db, weekly_template):
        generate_weekly_instances(db, *RANGE)
        template_db.update_template(weekly_template.id, priority="urgent")

        with patch.object(TaskDB, "patch_instance", autospec=True) as patched:
            generate_weekly_instances(db, *RANGE)

        assert patched.call_count == 3
        for call in patched.call_args_list:
            assert call.args[2] == {"priority": "urgent"}

    def test_manual_edit_of_due_date_restored(self, db, task_db, weekly_template):
        generate_weekly_instances(db, "2024-01-08", "2024-01-08")
        [inst] = task_db.list_by_template(weekly_template.id)
        task_db.patch_instance(inst.id, {"due_date": "2024-01-12"})

        result = generate_weekly_instances(db, "2024-01-08", "2024-01-08")

        assert result.updated_ids == [inst.id]
        assert task_db.get_instance(inst.id).due_date == "2024-01-08"

    def test_status_is_not_synced(self, db, task_db, weekly_template):
        generate_weekly_instances(db, "2024-01-08", "2024-01-08")
        [inst] = task_db.list_by_template(weekly_template.id)
        task_db.patch_instance(inst.id, {"status": "done"})

        result = generate_weekly_instances(db, "2024-01-08", "2024-01-08")

        assert result.updated_count == 0
        assert task_db.get_instance(inst.id).status == "done"

    def test_diff_instance(self, db, task_db, weekly_template):
        generate_weekly_instances(db, "2024-01-08", "2024-01-08")
        [inst] = task_db.list_by_template(weekly_template.id)
        assert diff_instance(inst, weekly_template, "2024-01-08") == {}
        weekly_template.end_time = "10:00"
        assert diff_instance(inst, weekly_template, "2024-01-08") == {"end_time": "10:00"}


class TestDuplicateSelfHeal:
    def test_keeps_first_deletes_rest(self, db, task_db, weekly_template):
        generate_weekly_instances(db, "2024-01-08", "2024-01-08")
        [first] = task_db.list_by_template(weekly_template.id)
        extra = _duplicate(task_db, weekly_template, "2024-01-08")

        result = generate_weekly_instances(db, "2024-01-08", "2024-01-08")

        assert result.deleted_count >= 1
        assert result.deleted_ids == [extra.id]
        remaining = task_db.find_recurring(weekly_template.id, "2024-01-08", period="weekly")
        assert [i.id for i in remaining] == [first.id]

    def test_exactly_one_per_day_after_reconcile(self, db, task_db, weekly_template):
        for day in ("2024-01-01", "2024-01-08", "2024-01-08", "2024-01-15", "2024-01-15"):
            _duplicate(task_db, weekly_template, day)

        generate_weekly_instances(db, *RANGE)

        for day in ("2024-01-01", "2024-01-08", "2024-01-15"):
            assert len(task_db.find_recurring(weekly_template.id, day, period="weekly")) == 1

    def test_non_recurring_copies_ignored(self, db, task_db, weekly_template):
        task_db.add_instance(
            title="Weekly report", date="2024-01-08", start_time="09:00",
            end_time="09:30", priority="medium", assignee_id="p-alice",
            creator_id="p-alice", template_id=weekly_template.id,
        )
        result = generate_weekly_instances(db, "2024-01-08", "2024-01-08")
        assert result.created_count == 1
        assert result.deleted_count == 0


class TestValidation:
    def test_inverted_range(self, db, weekly_template):
        with pytest.raises(DateValidationError):
            generate_weekly_instances(db, "2024-01-15", "2024-01-01")

    def test_malformed_date(self, db, weekly_template):
        with pytest.raises(DateValidationError):
            generate_weekly_instances(db, "2024-1-1", "2024-01-15")

    @pytest.mark.parametrize("bad_start", ["2024-01-01\n", "２０２４-０１-０１"])
    def test_non_canonical_start_writes_nothing(self, db, task_db, weekly_template, bad_start):
        with pytest.raises(DateValidationError):
            generate_weekly_instances(db, bad_start, "2024-01-15")
        assert task_db.list_by_template(weekly_template.id) == []

    def test_range_bound(self, db, task_db, weekly_template):
        with pytest.raises(DateRangeTooLargeError):
            generate_weekly_instances(db, "2024-01-01", "2025-06-01", max_days=366)
        assert task_db.list_by_template(weekly_template.id) == []

    def test_failure_mid_run_rolls_back(self, db, task_db, weekly_template):
        original = TaskDB.add_instance
        calls = {"n": 0}

        def flaky(self, **kwargs):
            calls["n"] += 1
            if calls["n"] == 3:
                raise RuntimeError("store unavailable")
            return original(self, **kwargs)

        with patch.object(TaskDB, "add_instance", flaky):
            with pytest.raises(RuntimeError):
                generate_weekly_instances(db, *RANGE)

        assert task_db.list_by_template(weekly_template.id) == []
