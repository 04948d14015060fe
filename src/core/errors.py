"""Exceptions raised by the recurrence engine.

Every exposed operation runs inside one store transaction, so raising any of
these aborts the whole call with no partial writes.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for recurrence engine failures."""


class DateValidationError(EngineError, ValueError):
    """Raised for an unparseable calendar date or an inverted date range."""


class DateRangeTooLargeError(DateValidationError):
    """Raised when a generation range spans more days than allowed."""


class PreconditionError(EngineError):
    """Raised when an entity lacks what an operation needs to proceed."""


class NoAssignableOwnerError(PreconditionError):
    """Raised when an editorial event has neither owner nor backup owner."""


class NotFoundError(EngineError, LookupError):
    """Raised when a referenced record does not exist."""
