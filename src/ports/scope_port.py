"""Scope port — who the caller may act on behalf of.

Identity and permission resolution live outside the engine; generators only
ask which assignees' rules are visible.
"""

from __future__ import annotations

from typing import Protocol


class ScopePort(Protocol):
    """Abstract visibility filter used by the instance generators."""

    def visible_assignee_ids(self) -> set[str] | None:
        """Return the visible assignee ids, or None for no restriction."""
        ...
