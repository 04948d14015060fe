"""Result contracts returned by the engine's exposed operations.

Field names are snake_case in Python; `model_dump(by_alias=True)` produces
the camelCase names callers of the HTTP/CLI surface expect, e.g.

    {"createdCount": 3, "createdIds": [4, 5, 6]}
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_serializer
from pydantic.alias_generators import to_camel


class _Contract(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DailyGenerationResult(_Contract):
    created_count: int = 0
    created_ids: list[int] = Field(default_factory=list)


class WeeklyReconcileResult(_Contract):
    created_count: int = 0
    updated_count: int = 0
    deleted_count: int = 0
    created_ids: list[int] = Field(default_factory=list)
    updated_ids: list[int] = Field(default_factory=list)
    deleted_ids: list[int] = Field(default_factory=list)


class AnchorTasksResult(_Contract):
    created_count: int = 0
    patched_template_applied_at: bool = False


class SweepResult(_Contract):
    today: str
    scanned: int = 0
    created: int = 0
    patched: int = 0
    # Set only in per-event isolation mode; dropped from the dump otherwise
    failed: int | None = None

    @model_serializer(mode="wrap")
    def _drop_unset_failed(self, handler):
        data = handler(self)
        if self.failed is None:
            data.pop("failed", None)
        return data


class EventWriteResult(_Contract):
    event_id: int
    template_result: AnchorTasksResult | None = None


class EventDeleteResult(_Contract):
    deleted_event_id: int
    deleted_tasks: int = 0
