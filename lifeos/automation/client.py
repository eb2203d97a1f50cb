"""
Automation Client - talks to the automation server over HTTP

Used by the dashboard backend and scripts to submit browser tasks and follow
their progress.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Iterable
from typing import Any

import requests

from lifeos.automation.models import FINISHED_STATUSES, Action
from lifeos.config import AUTOMATION_SERVER_URL
from lifeos.observability.logging import get_logger

logger = get_logger(__name__)


class AutomationClientError(RuntimeError):
    """Raised when the automation server is unreachable or answers with an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def new_task_id() -> str:
    """``task_<ms>_<random>``, unique enough for one dashboard session."""
    return f"task_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def _action_payload(action: Action | dict[str, Any]) -> dict[str, Any]:
    if isinstance(action, Action):
        return action.model_dump(by_alias=True, exclude_none=True)
    return dict(action)


class AutomationClient:
    """Thin requests wrapper over the automation server's endpoints."""

    def __init__(
        self,
        base_url: str = AUTOMATION_SERVER_URL,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _request(self, method: str, path: str, allow_404: bool = False, **kwargs: Any) -> Any:
        """
        Raises:
            AutomationClientError: On connection failure or a non-2xx reply
        """
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise AutomationClientError(f"Automation server not reachable: {e}") from e

        if allow_404 and response.status_code == 404:
            return None
        if not response.ok:
            raise AutomationClientError(
                f"Automation server error: {response.status_code}", status_code=response.status_code
            )
        return response.json()

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health")

    def is_healthy(self) -> bool:
        try:
            return self.health().get("status") in ("healthy", "ok")
        except AutomationClientError as e:
            logger.warning("Automation server not available: %s", e)
            return False

    def execute_task(
        self,
        task_id: str,
        actions: Iterable[Action | dict[str, Any]],
        session_id: str = "default",
    ) -> dict[str, Any]:
        """Submit a task; the server answers immediately and runs it in the background."""
        payload = {
            "taskId": task_id,
            "actions": [_action_payload(action) for action in actions],
            "sessionId": session_id,
        }
        return self._request("POST", "/execute-task", json=payload)

    def task_status(self, task_id: str) -> dict[str, Any] | None:
        """The task record, or None when the server does not know the task."""
        return self._request("GET", f"/task-status/{task_id}", allow_404=True)

    def list_tasks(self) -> list[dict[str, Any]]:
        return self._request("GET", "/tasks")

    def delete_task(self, task_id: str) -> dict[str, Any]:
        return self._request("DELETE", f"/task/{task_id}")

    def wait_for_completion(
        self,
        task_id: str,
        poll_interval: float = 1.0,
        timeout: float = 120.0,
    ) -> dict[str, Any]:
        """
        Poll until the task is completed, failed or cancelled.

        Raises:
            AutomationClientError: If the task disappears or ``timeout`` passes
        """
        deadline = time.monotonic() + timeout
        while True:
            status = self.task_status(task_id)
            if status is None:
                raise AutomationClientError(
                    "Task not found - may have been completed or server restarted", status_code=404
                )
            if status.get("status") in FINISHED_STATUSES:
                return status
            if time.monotonic() >= deadline:
                raise AutomationClientError(
                    "Task polling timeout - task may still be running on server"
                )
            time.sleep(poll_interval)
