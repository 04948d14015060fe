"""Clock adapters — implement ClockPort.

ZoneClock resolves today in the configured reference zone; FixedClock pins a
date for tests and for replaying a sweep with `main.py --today`.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from src.core.dates import parse_iso_date


class ZoneClock:
    """Wall clock in a single IANA time zone."""

    def __init__(self, timezone: str | None = None) -> None:
        if timezone is None:
            from src.config import settings
            timezone = settings.TIMEZONE

        self._tz = ZoneInfo(timezone)

    def today(self) -> str:
        return datetime.now(self._tz).date().isoformat()


class FixedClock:
    """Clock frozen on one calendar date."""

    def __init__(self, today: str) -> None:
        parse_iso_date(today)
        self._today = today

    def today(self) -> str:
        return self._today

    def set(self, today: str) -> None:
        parse_iso_date(today)
        self._today = today
