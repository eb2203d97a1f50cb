"""Integration tests for the automation server

The browser is replaced by an in-memory page, so tasks submitted over HTTP
run to completion in the request's background tasks.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from lifeos.automation import server


class FakePage:
    def __init__(self):
        self.url = "about:blank"
        self.visited: list[str] = []

    async def goto(self, url: str, **kwargs) -> None:
        self.url = url
        self.visited.append(url)

    async def wait_for_selector(self, selector: str, **kwargs) -> None:
        if selector == "#missing":
            raise TimeoutError(f"Timeout waiting for {selector}")

    async def click(self, selector: str) -> None:
        pass


@pytest.fixture
def page(monkeypatch) -> FakePage:
    fake = FakePage()
    sessions: list[str] = []

    async def get_page(session_id: str) -> FakePage:
        sessions.append(session_id)
        return fake

    monkeypatch.setattr(server.browser_manager, "get_page", get_page)
    monkeypatch.setattr(server.executor, "action_delay_seconds", 0)
    fake.sessions = sessions
    return fake


@pytest.fixture
def client():
    server.registry.clear()
    yield TestClient(server.app)
    server.registry.clear()


def submit(client: TestClient, task_id: str = "task-1", **extra):
    body = {
        "taskId": task_id,
        "actions": [
            {"type": "navigate", "description": "Open site", "target": "https://example.com"},
            {"type": "click", "description": "Missing button", "selector": "#missing"},
            {"type": "click", "description": "Login", "selector": "#login"},
        ],
    }
    body.update(extra)
    return client.post("/execute-task", json=body)


def test_missing_task_id(client):
    response = client.post("/execute-task", json={"actions": []})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing taskId or actions"}


def test_actions_must_be_a_list(client):
    response = client.post("/execute-task", json={"taskId": "t", "actions": "navigate"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing taskId or actions"}


def test_invalid_action_shape(client):
    response = client.post("/execute-task", json={"taskId": "t", "actions": [{"description": "no type"}]})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid actions"}
    assert server.registry.get("t") is None


def test_task_runs_to_completion(client, page):
    response = submit(client, sessionId="job-hunt")

    assert response.status_code == 200
    assert response.json() == {"success": True, "taskId": "task-1", "message": "Task started successfully"}

    status = client.get("/task-status/task-1").json()
    assert status["status"] == "completed"
    assert status["result"] == {"success": True, "pageId": "job-hunt", "message": "Tasks completed successfully"}
    assert status["endTime"] >= status["startTime"]
    assert page.visited == ["https://example.com"]
    assert page.sessions == ["job-hunt"]

    messages = [entry["message"] for entry in status["progress"]]
    assert "Step 2/3: Missing button" in messages
    assert any(message.startswith("⚠️ Action 2 failed") for message in messages)
    assert messages[-1] == "✅ All tasks completed successfully!"


def test_unknown_task_status(client):
    response = client.get("/task-status/nope")

    assert response.status_code == 404
    assert response.json() == {"error": "Task not found"}


def test_list_and_delete_tasks(client, page):
    submit(client, "task-1")
    submit(client, "task-2")

    assert {task["id"] for task in client.get("/tasks").json()} == {"task-1", "task-2"}

    response = client.delete("/task/task-1")
    assert response.json() == {"success": True, "message": "Task deleted"}
    assert [task["id"] for task in client.get("/tasks").json()] == ["task-2"]


def test_duplicate_running_task_is_409(client, page):
    running = server.registry.start("task-1")

    response = submit(client, "task-1")

    assert response.status_code == 409
    assert response.json() == {"error": "Task already running"}
    assert server.registry.get("task-1") is running
    assert running.status == "running"
    assert page.visited == []


def test_finished_task_id_can_be_resubmitted(client, page):
    submit(client, "task-1")
    assert client.get("/task-status/task-1").json()["status"] == "completed"

    response = submit(client, "task-1")

    assert response.status_code == 200
    assert page.visited == ["https://example.com", "https://example.com"]


def test_delete_unknown_task_still_succeeds(client):
    assert client.delete("/task/ghost").json()["success"] is True


def test_health(client, page):
    submit(client)

    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["browser"] == "disconnected"
    assert body["activeTasks"] == 0
    assert body["totalTasks"] == 1
    assert body["uptime"] >= 0


def test_wake(client):
    body = client.get("/wake").json()

    assert body["status"] == "awake"
    assert body["message"] == "Server is now awake and ready"
