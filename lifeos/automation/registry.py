"""In-memory registry of automation tasks."""

from __future__ import annotations

from lifeos.automation.models import TaskRecord, now_ms
from lifeos.config import AUTOMATION_TASK_RETENTION_SECONDS
from lifeos.observability.logging import get_logger

logger = get_logger(__name__)


class TaskAlreadyRunningError(RuntimeError):
    """Raised when a task id is submitted again while its first run is still going."""

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} is already running")
        self.task_id = task_id


class TaskRegistry:
    """
    Task records keyed by task id, for the life of the process.

    Finished tasks are pruned once they are older than the retention
    window; running tasks are never pruned.
    """

    def __init__(self, retention_seconds: float = AUTOMATION_TASK_RETENTION_SECONDS):
        self.retention_seconds = retention_seconds
        self._tasks: dict[str, TaskRecord] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def start(self, task_id: str) -> TaskRecord:
        """
        Register ``task_id`` as running. A finished record with the same id is
        replaced.

        Raises:
            TaskAlreadyRunningError: When the id belongs to a task still running
        """
        existing = self._tasks.get(task_id)
        if existing is not None and not existing.finished:
            raise TaskAlreadyRunningError(task_id)
        record = TaskRecord(id=task_id, status="running")
        self._tasks[task_id] = record
        return record

    def get(self, task_id: str) -> TaskRecord | None:
        return self._tasks.get(task_id)

    def all(self) -> list[TaskRecord]:
        return list(self._tasks.values())

    def running_count(self) -> int:
        return sum(1 for record in self._tasks.values() if record.status == "running")

    def delete(self, task_id: str) -> TaskRecord | None:
        """
        Remove a task. A running task is marked cancelled first so its
        executor stops before the next action.
        """
        record = self._tasks.pop(task_id, None)
        if record is not None and not record.finished:
            record.status = "cancelled"
            record.end_time = now_ms()
            record.add_progress("🛑 Task cancelled")
        return record

    def prune(self, now: int | None = None) -> int:
        """Drop finished tasks older than the retention window; returns how many."""
        cutoff = (now if now is not None else now_ms()) - int(self.retention_seconds * 1000)
        expired = [
            task_id
            for task_id, record in self._tasks.items()
            if record.finished and (record.end_time or record.start_time) < cutoff
        ]
        for task_id in expired:
            del self._tasks[task_id]
        if expired:
            logger.debug("Pruned %d finished automation tasks", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._tasks.clear()
