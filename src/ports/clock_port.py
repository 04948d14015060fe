"""Clock port — abstract source of the current civil date.

Core modules depend on this protocol, never on a global "now".
"""

from __future__ import annotations

from typing import Protocol


class ClockPort(Protocol):
    """Resolves "today" as an ISO calendar date (YYYY-MM-DD)."""

    def today(self) -> str: ...
