"""Shared test fixtures and configuration.

Sets environment variables before any src imports so src.config loads a
predictable configuration, and provides a temp-file database plus a clock
pinned to a fixed date.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "Europe/Paris")
os.environ.setdefault("SWEEP_MINUTE", "5")
os.environ.setdefault("SWEEP_ISOLATE_EVENTS", "false")
os.environ.setdefault("MAX_RANGE_DAYS", "366")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_opsboard.db")


@pytest.fixture
def db(tmp_db_path):
    """Return a Database backed by a temp file."""
    from src.data.db import Database
    database = Database(db_path=tmp_db_path)
    yield database
    database.close()


@pytest.fixture
def clock():
    """Clock pinned to 2024-03-05."""
    from src.adapters.clocks import FixedClock
    return FixedClock("2024-03-05")


@pytest.fixture
def template_db(db):
    from src.data.db import TemplateDB
    return TemplateDB(db)


@pytest.fixture
def task_db(db):
    from src.data.db import TaskDB
    return TaskDB(db)


@pytest.fixture
def editorial_db(db):
    from src.data.db import EditorialDB
    return EditorialDB(db)


@pytest.fixture
def weekly_template(template_db):
    """Active Monday reminder from 2024-01-01 with no end date."""
    return template_db.add_weekly_template(
        title="Weekly report",
        weekday="mon",
        start_date="2024-01-01",
        start_time="09:00",
        end_time="09:30",
        priority="medium",
        assignee_id="p-alice",
        creator_id="p-admin",
    )


@pytest.fixture
def daily_template(template_db):
    """Active daily block for p-alice."""
    return template_db.add_daily_template(
        title="Inbox zero",
        start_time="08:00",
        end_time="08:30",
        priority="low",
        assignee_id="p-alice",
        creator_id="p-admin",
    )
