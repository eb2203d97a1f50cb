"""Unit tests for the automation server HTTP client"""

from __future__ import annotations

import re

import pytest
import requests

from lifeos.automation import client as client_module
from lifeos.automation.client import AutomationClient, AutomationClientError, new_task_id
from lifeos.automation.models import Action


class FakeResponse:
    def __init__(self, status_code: int, body):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._body = body

    def json(self):
        return self._body


class FakeSession:
    """Replays queued responses and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[tuple[str, str, dict]] = []

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append((method, url, kwargs))
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_client(*responses) -> tuple[AutomationClient, FakeSession]:
    session = FakeSession(*responses)
    return AutomationClient("http://automation.test/", session=session), session


def test_new_task_id_format():
    assert re.fullmatch(r"task_\d+_[0-9a-f]{10}", new_task_id())
    assert new_task_id() != new_task_id()


def test_execute_task_sends_camel_case_payload():
    client, session = make_client(FakeResponse(200, {"success": True, "taskId": "t1"}))

    reply = client.execute_task(
        "t1",
        [Action(type="navigate", description="Open", target="https://example.com"), {"type": "wait"}],
        session_id="s1",
    )

    assert reply["success"] is True
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("POST", "http://automation.test/execute-task")
    assert kwargs["json"] == {
        "taskId": "t1",
        "actions": [
            {"type": "navigate", "description": "Open", "target": "https://example.com"},
            {"type": "wait"},
        ],
        "sessionId": "s1",
    }


def test_task_status_none_when_unknown():
    client, _ = make_client(FakeResponse(404, {"error": "Task not found"}))
    assert client.task_status("nope") is None


def test_server_error_raises():
    client, _ = make_client(FakeResponse(400, {"error": "Missing taskId or actions"}))

    with pytest.raises(AutomationClientError) as exc_info:
        client.execute_task("", [])
    assert exc_info.value.status_code == 400


def test_connection_failure_raises():
    client, _ = make_client(requests.ConnectionError("refused"))

    with pytest.raises(AutomationClientError, match="not reachable"):
        client.health()


def test_is_healthy():
    client, _ = make_client(FakeResponse(200, {"status": "healthy"}), requests.Timeout("slow"))

    assert client.is_healthy()
    assert not client.is_healthy()


def test_list_and_delete():
    client, session = make_client(FakeResponse(200, [{"id": "t1"}]), FakeResponse(200, {"success": True}))

    assert client.list_tasks() == [{"id": "t1"}]
    assert client.delete_task("t1") == {"success": True}
    assert session.requests[1][:2] == ("DELETE", "http://automation.test/task/t1")


def test_wait_for_completion_polls_until_finished(monkeypatch):
    monkeypatch.setattr(client_module.time, "sleep", lambda seconds: None)
    client, session = make_client(
        FakeResponse(200, {"id": "t1", "status": "running"}),
        FakeResponse(200, {"id": "t1", "status": "running"}),
        FakeResponse(200, {"id": "t1", "status": "completed", "result": {"success": True}}),
    )

    status = client.wait_for_completion("t1", poll_interval=0.01)

    assert status["status"] == "completed"
    assert len(session.requests) == 3


def test_wait_for_completion_task_disappeared(monkeypatch):
    monkeypatch.setattr(client_module.time, "sleep", lambda seconds: None)
    client, _ = make_client(FakeResponse(404, {"error": "Task not found"}))

    with pytest.raises(AutomationClientError, match="Task not found"):
        client.wait_for_completion("t1")


def test_wait_for_completion_times_out(monkeypatch):
    monkeypatch.setattr(client_module.time, "sleep", lambda seconds: None)
    client, _ = make_client(*[FakeResponse(200, {"status": "running"}) for _ in range(3)])

    with pytest.raises(AutomationClientError, match="timeout"):
        client.wait_for_completion("t1", timeout=0)
