"""Wire types for the browser automation server."""

from __future__ import annotations

import time
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lifeos.config import AUTOMATION_DEFAULT_WAIT_MS

ActionType = Literal["navigate", "click", "type", "wait", "search"]
TaskStatus = Literal["pending", "running", "completed", "failed", "cancelled"]

KNOWN_ACTION_TYPES: frozenset[str] = frozenset(get_args(ActionType))
FINISHED_STATUSES: frozenset[str] = frozenset({"completed", "failed", "cancelled"})


def now_ms() -> int:
    """Wall-clock milliseconds, the unit every task timestamp uses."""
    return int(time.time() * 1000)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Action(_WireModel):
    """
    One browser step.

    ``type`` stays a plain string: unknown types are accepted and reported
    as skipped when the task runs.
    """

    type: str
    description: str = ""
    target: str | None = None
    selector: str | None = None
    value: str | None = None
    duration: int | None = Field(default=None, ge=0)

    @property
    def wait_ms(self) -> int:
        return self.duration or AUTOMATION_DEFAULT_WAIT_MS


class ProgressEntry(_WireModel):
    message: str
    timestamp: int = Field(default_factory=now_ms)


class TaskRecord(_WireModel):
    """Server-side state of one submitted task."""

    id: str
    status: TaskStatus = "pending"
    progress: list[ProgressEntry] = Field(default_factory=list)
    start_time: int = Field(default_factory=now_ms)
    end_time: int | None = None
    result: dict[str, Any] | None = None
    error: str | None = None

    @property
    def finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    def add_progress(self, message: str) -> None:
        self.progress.append(ProgressEntry(message=message))

    def finish(self, status: TaskStatus, result: dict[str, Any] | None = None, error: str | None = None) -> None:
        """Move to a final status; a cancelled task keeps its status."""
        if self.status == "cancelled":
            return
        self.status = status
        self.result = result
        self.error = error
        self.end_time = now_ms()

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ExecuteTaskRequest(_WireModel):
    task_id: str
    actions: list[Action]
    session_id: str = "default"
