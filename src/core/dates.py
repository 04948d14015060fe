"""Calendar-date arithmetic on ISO date strings.

Dates travel through the engine as zero-padded "YYYY-MM-DD" strings, so
plain string comparison orders them correctly. Day shifts go through a
local-noon anchor, which keeps a daylight-saving jump from ever moving the
result onto a neighbouring date.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from datetime import datetime, timedelta

from src.core.errors import DateRangeTooLargeError, DateValidationError

_ISO_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")

WEEKDAYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def parse_iso_date(value: str) -> datetime:
    """Parse a YYYY-MM-DD string into a naive datetime at local noon.

    Raises DateValidationError on anything that is not a real calendar date.
    """
    if not isinstance(value, str) or not _ISO_DATE_RE.fullmatch(value):
        raise DateValidationError(f"Invalid date: {value!r}")
    year, month, day = map(int, value.split("-"))
    try:
        return datetime(year, month, day, 12, 0, 0)
    except ValueError as exc:
        raise DateValidationError(f"Invalid date: {value!r}") from exc


def to_iso_date(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d")


def add_days(value: str, days: int) -> str:
    """Shift an ISO date by a whole number of days (negative goes back)."""
    return to_iso_date(parse_iso_date(value) + timedelta(days=days))


def compare(a: str, b: str) -> int:
    """Three-way lexicographic comparison of two ISO dates."""
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def weekday_of(value: str) -> str:
    """Return the weekday symbol ("mon" .. "sun") of an ISO date."""
    return WEEKDAYS[parse_iso_date(value).weekday()]


def validate_weekday(symbol: str) -> str:
    if symbol not in WEEKDAYS:
        raise DateValidationError(
            f"Unknown weekday {symbol!r}, expected one of {', '.join(WEEKDAYS)}"
        )
    return symbol


def span_days(start_date: str, end_date: str) -> int:
    """Number of days in the inclusive range (0 or less when inverted)."""
    return (parse_iso_date(end_date) - parse_iso_date(start_date)).days + 1


def validate_range(
    start_date: str,
    end_date: str,
    max_days: int | None = None,
    require_ordered: bool = True,
) -> None:
    """Check both bounds parse and the range fits.

    Args:
        start_date: First day of the range, inclusive.
        end_date: Last day of the range, inclusive.
        max_days: Largest accepted inclusive span; None disables the bound.
        require_ordered: Reject end_date < start_date when True.
    """
    span = span_days(start_date, end_date)
    if require_ordered and span < 1:
        raise DateValidationError(
            f"End date {end_date} is before start date {start_date}"
        )
    if max_days is not None and span > max_days:
        raise DateRangeTooLargeError(
            f"Range {start_date}..{end_date} spans {span} days (max {max_days})"
        )


def iter_days(start_date: str, end_date: str) -> Iterator[str]:
    """Yield every ISO date from start_date to end_date, both inclusive."""
    current = start_date
    while current <= end_date:
        yield current
        current = add_days(current, 1)
