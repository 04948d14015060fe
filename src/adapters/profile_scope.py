"""Scope adapters — implement ScopePort.

Admins see every rule; any other role sees only rules assigned to itself.
"""

from __future__ import annotations


class AllScope:
    """Unrestricted scope, used by the maintenance CLI."""

    def visible_assignee_ids(self) -> set[str] | None:
        return None


class ProfileScope:
    """Scope derived from a resolved caller profile."""

    def __init__(self, profile_id: str, role: str) -> None:
        self._profile_id = profile_id
        self._role = role

    def visible_assignee_ids(self) -> set[str] | None:
        if self._role == "admin":
            return None
        return {self._profile_id}
