"""
OpsBoard Recurrence Engine — SQLite store.

Rules, task instances, editorial events and communication tasks share one
database and one connection. Every exposed engine operation wraps its reads
and writes in Database.transaction(), so the operation commits as a whole or
not at all. Nested transaction() calls join the outermost one.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from src.core.errors import NotFoundError
from src.data.models import (
    KIND_DAILY,
    KIND_WEEKLY,
    CommunicationTask,
    EditorialEvent,
    TaskInstance,
    TemplateRule,
)

logger = logging.getLogger(__name__)

_TEMPLATE_COLUMNS = {
    "title", "description", "start_time", "end_time", "priority",
    "weekday", "start_date", "end_date", "assignee_id", "active",
}
_INSTANCE_COLUMNS = {
    "title", "description", "date", "due_date", "start_time", "end_time",
    "priority", "status", "assignee_id", "period", "entry_type",
}
_EVENT_COLUMNS = {
    "title", "category", "prep_start_date", "start_date", "end_date",
    "priority", "status", "owner_profile_id", "backup_owner_profile_id",
    "auto_create_template_tasks", "notes",
}
_TASK_COLUMNS = {"title", "assignee_id", "due_date", "status", "checklist"}


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _set_clause(changes: dict, allowed: set[str]) -> tuple[str, list]:
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Unknown column(s): {', '.join(sorted(unknown))}")
    columns = sorted(changes)
    return ", ".join(f"{col} = ?" for col in columns), [changes[c] for c in columns]


class Database:
    """Owns the SQLite connection, the schema and the transaction boundary."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode: BEGIN/COMMIT are issued explicitly by transaction().
        # The scheduler runs jobs on a worker thread, one at a time.
        self._conn = sqlite3.connect(
            db_path, isolation_level=None, check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        self._depth = 0
        self._savepoints = 0
        self._init_db()

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed block atomically.

        The outermost call opens BEGIN IMMEDIATE and commits on success or
        rolls back on any exception. Inner calls join it, so an error raised
        anywhere undoes everything since the outermost BEGIN.
        """
        outermost = self._depth == 0
        if outermost:
            self._conn.execute("BEGIN IMMEDIATE")
        self._depth += 1
        try:
            yield self._conn
        except BaseException:
            self._depth -= 1
            if outermost:
                self._conn.execute("ROLLBACK")
                logger.debug("Transaction rolled back")
            raise
        self._depth -= 1
        if outermost:
            self._conn.execute("COMMIT")

    @contextmanager
    def savepoint(self) -> Iterator[sqlite3.Connection]:
        """Nested atomic unit inside an open transaction.

        Rolls back only its own writes on error, then re-raises.
        """
        if not self.in_transaction:
            raise RuntimeError("savepoint() requires an open transaction")
        self._savepoints += 1
        name = f"sp_{self._savepoints}"
        self._conn.execute(f"SAVEPOINT {name}")
        try:
            yield self._conn
        except BaseException:
            self._conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
            self._conn.execute(f"RELEASE SAVEPOINT {name}")
            raise
        self._conn.execute(f"RELEASE SAVEPOINT {name}")

    def _init_db(self) -> None:
        """Create all tables and indexes if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS templates (
                id           INTEGER PRIMARY KEY AUTOINCREMENT,
                kind         TEXT    NOT NULL,
                title        TEXT    NOT NULL,
                description  TEXT,
                start_time   TEXT    NOT NULL,
                end_time     TEXT    NOT NULL,
                priority     TEXT    NOT NULL DEFAULT 'medium',
                weekday      TEXT,
                start_date   TEXT,
                end_date     TEXT,
                assignee_id  TEXT    NOT NULL,
                creator_id   TEXT    NOT NULL,
                active       INTEGER NOT NULL DEFAULT 1
            );
            CREATE INDEX IF NOT EXISTS idx_templates_kind ON templates (kind, assignee_id);

            -- template_id is a weak reference: no FOREIGN KEY, no cascade
            CREATE TABLE IF NOT EXISTS task_instances (
                id                    INTEGER PRIMARY KEY AUTOINCREMENT,
                title                 TEXT    NOT NULL,
                description           TEXT,
                date                  TEXT    NOT NULL,
                due_date              TEXT,
                start_time            TEXT    NOT NULL,
                end_time              TEXT    NOT NULL,
                priority              TEXT    NOT NULL DEFAULT 'medium',
                status                TEXT    NOT NULL DEFAULT 'todo',
                assignee_id           TEXT    NOT NULL,
                creator_id            TEXT    NOT NULL,
                period                TEXT    NOT NULL DEFAULT 'none',
                entry_type            TEXT    NOT NULL DEFAULT 'task',
                is_recurring_instance INTEGER NOT NULL DEFAULT 0,
                template_id           INTEGER,
                created_at            TEXT    NOT NULL,
                updated_at            TEXT    NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_instances_assignee_date
                ON task_instances (assignee_id, date);
            CREATE INDEX IF NOT EXISTS idx_instances_template_date
                ON task_instances (template_id, date);

            CREATE TABLE IF NOT EXISTS editorial_events (
                id                          INTEGER PRIMARY KEY AUTOINCREMENT,
                title                       TEXT    NOT NULL,
                category                    TEXT    NOT NULL DEFAULT 'interne',
                prep_start_date             TEXT    NOT NULL,
                start_date                  TEXT    NOT NULL,
                end_date                    TEXT,
                priority                    TEXT    NOT NULL DEFAULT 'moyen',
                status                      TEXT    NOT NULL DEFAULT 'a_preparer',
                owner_profile_id            TEXT,
                backup_owner_profile_id     TEXT,
                auto_create_template_tasks  INTEGER NOT NULL DEFAULT 0,
                template_applied_at         TEXT,
                notes                       TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_events_prep_start
                ON editorial_events (prep_start_date);

            CREATE TABLE IF NOT EXISTS communication_tasks (
                id                     INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id               INTEGER NOT NULL,
                title                  TEXT    NOT NULL,
                assignee_id            TEXT    NOT NULL,
                due_date               TEXT    NOT NULL,
                status                 TEXT    NOT NULL DEFAULT 'todo',
                checklist              TEXT    NOT NULL DEFAULT '[]',
                created_by_profile_id  TEXT    NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_comm_tasks_event
                ON communication_tasks (event_id);
        """)
        logger.debug("Schema initialized at %s", self._db_path)


class TemplateDB:
    """Rule store: daily blocks and weekly reminders."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _row_to_template(row: sqlite3.Row) -> TemplateRule:
        return TemplateRule(
            id=row["id"],
            kind=row["kind"],
            title=row["title"],
            description=row["description"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            priority=row["priority"],
            weekday=row["weekday"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            assignee_id=row["assignee_id"],
            creator_id=row["creator_id"],
            active=bool(row["active"]),
        )

    def _insert(self, **values) -> TemplateRule:
        columns = sorted(values)
        cursor = self._db.conn.execute(
            f"INSERT INTO templates ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})",
            [values[c] for c in columns],
        )
        template = self.get_template(cursor.lastrowid)
        logger.info(
            "Template added: #%d %s '%s'", template.id, template.kind, template.title,
        )
        return template

    def add_daily_template(
        self,
        title: str,
        start_time: str,
        end_time: str,
        priority: str,
        assignee_id: str,
        creator_id: str,
        description: str | None = None,
    ) -> TemplateRule:
        """Insert an active daily_block rule."""
        return self._insert(
            kind=KIND_DAILY, title=title, description=description,
            start_time=start_time, end_time=end_time, priority=priority,
            assignee_id=assignee_id, creator_id=creator_id, active=1,
        )

    def add_weekly_template(
        self,
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
        """Insert an active weekly_reminder rule."""
        return self._insert(
            kind=KIND_WEEKLY, title=title, description=description,
            weekday=weekday, start_date=start_date, end_date=end_date,
            start_time=start_time, end_time=end_time, priority=priority,
            assignee_id=assignee_id, creator_id=creator_id, active=1,
        )

    def get_template(self, template_id: int) -> TemplateRule | None:
        row = self._db.conn.execute(
            "SELECT * FROM templates WHERE id = ?", (template_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_template(row)

    def list_templates(
        self,
        kind: str,
        active_only: bool = False,
        assignee_ids: set[str] | None = None,
    ) -> list[TemplateRule]:
        """List rules of one kind, optionally active only and/or scoped."""
        query = "SELECT * FROM templates WHERE kind = ?"
        params: list = [kind]
        if active_only:
            query += " AND active = 1"
        if assignee_ids is not None:
            if not assignee_ids:
                return []
            query += f" AND assignee_id IN ({', '.join('?' for _ in assignee_ids)})"
            params.extend(sorted(assignee_ids))
        query += " ORDER BY id"

        rows = self._db.conn.execute(query, params).fetchall()
        return [self._row_to_template(r) for r in rows]

    def update_template(self, template_id: int, **changes) -> TemplateRule:
        """Patch a rule's editable fields. Raises NotFoundError if missing."""
        if "active" in changes:
            changes["active"] = int(bool(changes["active"]))
        if changes:
            clause, params = _set_clause(changes, _TEMPLATE_COLUMNS)
            cursor = self._db.conn.execute(
                f"UPDATE templates SET {clause} WHERE id = ?", [*params, template_id],
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Template {template_id} not found")
        template = self.get_template(template_id)
        if template is None:
            raise NotFoundError(f"Template {template_id} not found")
        logger.info("Template #%d updated: %s", template_id, ", ".join(sorted(changes)))
        return template

    def set_active(self, template_id: int, active: bool) -> TemplateRule:
        return self.update_template(template_id, active=active)

    def delete_template(self, template_id: int) -> bool:
        """Hard-delete a rule. Instances that reference it are left alone."""
        cursor = self._db.conn.execute(
            "DELETE FROM templates WHERE id = ?", (template_id,)
        )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Template #%d deleted", template_id)
        return deleted


class TaskDB:
    """Instance store: concrete dated work items."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _row_to_instance(row: sqlite3.Row) -> TaskInstance:
        return TaskInstance(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            date=row["date"],
            due_date=row["due_date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            priority=row["priority"],
            status=row["status"],
            assignee_id=row["assignee_id"],
            creator_id=row["creator_id"],
            period=row["period"],
            entry_type=row["entry_type"],
            is_recurring_instance=bool(row["is_recurring_instance"]),
            template_id=row["template_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def add_instance(
        self,
        title: str,
        date: str,
        start_time: str,
        end_time: str,
        priority: str,
        assignee_id: str,
        creator_id: str,
        description: str | None = None,
        due_date: str | None = None,
        status: str = "todo",
        period: str = "none",
        entry_type: str = "task",
        is_recurring_instance: bool = False,
        template_id: int | None = None,
    ) -> TaskInstance:
        """Insert a task instance and return it."""
        now = _now()
        cursor = self._db.conn.execute(
            """
            INSERT INTO task_instances
                (title, description, date, due_date, start_time, end_time,
                 priority, status, assignee_id, creator_id, period, entry_type,
                 is_recurring_instance, template_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                title, description, date, due_date, start_time, end_time,
                priority, status, assignee_id, creator_id, period, entry_type,
                int(is_recurring_instance), template_id, now, now,
            ),
        )
        instance = TaskInstance(
            id=cursor.lastrowid,
            title=title,
            description=description,
            date=date,
            due_date=due_date,
            start_time=start_time,
            end_time=end_time,
            priority=priority,
            status=status,
            assignee_id=assignee_id,
            creator_id=creator_id,
            period=period,
            entry_type=entry_type,
            is_recurring_instance=is_recurring_instance,
            template_id=template_id,
            created_at=now,
            updated_at=now,
        )
        logger.info("Task instance added: #%d '%s' on %s", instance.id, title, date)
        return instance

    def get_instance(self, instance_id: int) -> TaskInstance | None:
        row = self._db.conn.execute(
            "SELECT * FROM task_instances WHERE id = ?", (instance_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_instance(row)

    def find_by_assignee_date(self, assignee_id: str, date: str) -> list[TaskInstance]:
        """All instances for one assignee on one day, in insertion order."""
        rows = self._db.conn.execute(
            "SELECT * FROM task_instances WHERE assignee_id = ? AND date = ? ORDER BY id",
            (assignee_id, date),
        ).fetchall()
        return [self._row_to_instance(r) for r in rows]

    def find_recurring(
        self, template_id: int, date: str, period: str,
    ) -> list[TaskInstance]:
        """Recurring instances of one rule on one day, in insertion order."""
        rows = self._db.conn.execute(
            """
            SELECT * FROM task_instances
            WHERE template_id = ? AND date = ?
              AND is_recurring_instance = 1 AND period = ?
            ORDER BY id
            """,
            (template_id, date, period),
        ).fetchall()
        return [self._row_to_instance(r) for r in rows]

    def list_by_template(self, template_id: int) -> list[TaskInstance]:
        rows = self._db.conn.execute(
            "SELECT * FROM task_instances WHERE template_id = ? ORDER BY date, id",
            (template_id,),
        ).fetchall()
        return [self._row_to_instance(r) for r in rows]

    def patch_instance(self, instance_id: int, changes: dict) -> None:
        """Write only the given fields and refresh updated_at."""
        if not changes:
            return
        clause, params = _set_clause(changes, _INSTANCE_COLUMNS)
        self._db.conn.execute(
            f"UPDATE task_instances SET {clause}, updated_at = ? WHERE id = ?",
            [*params, _now(), instance_id],
        )
        logger.info(
            "Task instance #%d patched: %s", instance_id, ", ".join(sorted(changes)),
        )

    def delete_instance(self, instance_id: int) -> bool:
        cursor = self._db.conn.execute(
            "DELETE FROM task_instances WHERE id = ?", (instance_id,)
        )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Task instance #%d deleted", instance_id)
        return deleted


class EditorialDB:
    """Editorial events and their communication tasks."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> EditorialEvent:
        return EditorialEvent(
            id=row["id"],
            title=row["title"],
            category=row["category"],
            prep_start_date=row["prep_start_date"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            priority=row["priority"],
            status=row["status"],
            owner_profile_id=row["owner_profile_id"],
            backup_owner_profile_id=row["backup_owner_profile_id"],
            auto_create_template_tasks=bool(row["auto_create_template_tasks"]),
            template_applied_at=row["template_applied_at"],
            notes=row["notes"],
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> CommunicationTask:
        return CommunicationTask(
            id=row["id"],
            event_id=row["event_id"],
            title=row["title"],
            assignee_id=row["assignee_id"],
            due_date=row["due_date"],
            status=row["status"],
            checklist=json.loads(row["checklist"]),
            created_by_profile_id=row["created_by_profile_id"],
        )

    # -- events ------------------------------------------------------------

    def add_event(
        self,
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
    ) -> EditorialEvent:
        """Insert an editorial event with template_applied_at unset."""
        cursor = self._db.conn.execute(
            """
            INSERT INTO editorial_events
                (title, category, prep_start_date, start_date, end_date,
                 priority, status, owner_profile_id, backup_owner_profile_id,
                 auto_create_template_tasks, template_applied_at, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, ?)
            """,
            (
                title, category, prep_start_date, start_date, end_date,
                priority, status, owner_profile_id, backup_owner_profile_id,
                int(auto_create_template_tasks), notes,
            ),
        )
        event = self.get_event(cursor.lastrowid)
        logger.info(
            "Editorial event added: #%d '%s' prep %s, post %s",
            event.id, title, prep_start_date, start_date,
        )
        return event

    def get_event(self, event_id: int) -> EditorialEvent | None:
        row = self._db.conn.execute(
            "SELECT * FROM editorial_events WHERE id = ?", (event_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_event(row)

    def list_events_prepping_by(self, today: str) -> list[EditorialEvent]:
        """Every event whose prep_start_date <= today, however old."""
        rows = self._db.conn.execute(
            "SELECT * FROM editorial_events WHERE prep_start_date <= ? "
            "ORDER BY prep_start_date, id",
            (today,),
        ).fetchall()
        return [self._row_to_event(r) for r in rows]

    def update_event(self, event_id: int, changes: dict) -> None:
        if not changes:
            return
        if "auto_create_template_tasks" in changes:
            changes["auto_create_template_tasks"] = int(
                bool(changes["auto_create_template_tasks"])
            )
        clause, params = _set_clause(changes, _EVENT_COLUMNS)
        cursor = self._db.conn.execute(
            f"UPDATE editorial_events SET {clause} WHERE id = ?", [*params, event_id],
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Editorial event {event_id} not found")
        logger.info("Editorial event #%d updated: %s", event_id, ", ".join(sorted(changes)))

    def set_template_applied_at(self, event_id: int, applied_on: str) -> None:
        self._db.conn.execute(
            "UPDATE editorial_events SET template_applied_at = ? WHERE id = ?",
            (applied_on, event_id),
        )
        logger.info("Editorial event #%d template applied on %s", event_id, applied_on)

    def delete_event(self, event_id: int) -> bool:
        cursor = self._db.conn.execute(
            "DELETE FROM editorial_events WHERE id = ?", (event_id,)
        )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Editorial event #%d deleted", event_id)
        return deleted

    # -- communication tasks ----------------------------------------------

    def list_tasks(self, event_id: int) -> list[CommunicationTask]:
        rows = self._db.conn.execute(
            "SELECT * FROM communication_tasks WHERE event_id = ? ORDER BY id",
            (event_id,),
        ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def add_task(
        self,
        event_id: int,
        title: str,
        assignee_id: str,
        due_date: str,
        created_by_profile_id: str,
        status: str = "todo",
        checklist: list[dict] | None = None,
    ) -> CommunicationTask:
        checklist = checklist or []
        cursor = self._db.conn.execute(
            """
            INSERT INTO communication_tasks
                (event_id, title, assignee_id, due_date, status, checklist,
                 created_by_profile_id)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event_id, title, assignee_id, due_date, status,
                json.dumps(checklist), created_by_profile_id,
            ),
        )
        task = CommunicationTask(
            id=cursor.lastrowid,
            event_id=event_id,
            title=title,
            assignee_id=assignee_id,
            due_date=due_date,
            status=status,
            checklist=checklist,
            created_by_profile_id=created_by_profile_id,
        )
        logger.info(
            "Communication task added: #%d '%s' for event #%d due %s",
            task.id, title, event_id, due_date,
        )
        return task

    def update_task(self, task_id: int, **changes) -> None:
        if "checklist" in changes:
            changes["checklist"] = json.dumps(changes["checklist"])
        clause, params = _set_clause(changes, _TASK_COLUMNS)
        cursor = self._db.conn.execute(
            f"UPDATE communication_tasks SET {clause} WHERE id = ?", [*params, task_id],
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Communication task {task_id} not found")

    def delete_task(self, task_id: int) -> bool:
        cursor = self._db.conn.execute(
            "DELETE FROM communication_tasks WHERE id = ?", (task_id,)
        )
        return cursor.rowcount > 0
