"""
Pytest configuration for LifeOS tests

Points the database at a temporary file and relaxes rate limits before any
lifeos module is imported, and resets every in-process store between tests.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import pytest

_TEST_DIR = Path(tempfile.mkdtemp(prefix="lifeos-tests-"))
os.environ["LIFEOS_DB_PATH"] = str(_TEST_DIR / "lifeos-test.db")
os.environ["LIFEOS_ENV"] = "development"
os.environ["AUTH_REQUIRED"] = "false"
os.environ["LIFEOS_RATE_LIMIT_RPM"] = "100000"
os.environ["LIFEOS_RATE_LIMIT_RPH"] = "100000"
os.environ["LIFEOS_RATE_LIMIT_AI_PM"] = "100000"
os.environ["LIFEOS_RATE_LIMIT_AI_PH"] = "100000"
os.environ["AUTOMATION_ACTION_DELAY"] = "0"
os.environ["AUTOMATION_HEADLESS"] = "true"
os.environ.pop("GOOGLE_CLOUD_PROJECT", None)


@pytest.fixture(autouse=True)
def fresh_state():
    """Empty database tables, caches, telemetry and pending writes for every test."""
    from lifeos.api.middleware.user_auth import clear_token_cache
    from lifeos.appdata.repository import get_store
    from lifeos.infrastructure.database import db_transaction, init_database, reset_pool
    from lifeos.llm.client import clear_llm_cache
    from lifeos.observability.telemetry import reset_telemetry

    reset_pool()
    init_database()
    with db_transaction() as conn:
        conn.execute("DELETE FROM users")
        conn.execute("DELETE FROM llm_usage")

    get_store().clear()
    clear_llm_cache()
    reset_telemetry()
    clear_token_cache()

    yield

    get_store().clear()


class FakeModel:
    """Stands in for lifeos.llm.client.call_model; replies are queued per test."""

    def __init__(self) -> None:
        self.replies: list[Any] = []
        self.prompts: list[str] = []
        self.models: list[str | None] = []

    def queue(self, *replies: Any) -> FakeModel:
        """Queue replies: dicts are sent as JSON, strings as-is, exceptions are raised."""
        self.replies.extend(replies)
        return self

    def __call__(self, prompt: str, model_name: str | None = None, json_mode: bool = True) -> str:
        self.prompts.append(prompt)
        self.models.append(model_name)
        if not self.replies:
            raise AssertionError("Unexpected model call")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply if isinstance(reply, str) else json.dumps(reply)

    @property
    def calls(self) -> int:
        return len(self.prompts)


@pytest.fixture
def fake_model(monkeypatch) -> FakeModel:
    """Replace the Gemini call used by every flow."""
    fake = FakeModel()
    monkeypatch.setattr("lifeos.llm.client.call_model", fake)
    return fake


@pytest.fixture
def api_client():
    """TestClient for the dashboard API (startup hooks are not run)."""
    from fastapi.testclient import TestClient

    from lifeos.api.app import app

    return TestClient(app)


@pytest.fixture
def sample_resume() -> dict[str, Any]:
    return {
        "contactInfo": {
            "name": "Asha Rao",
            "location": "Pune, India",
            "phone": "+91 90000 00000",
            "email": "asha@example.com",
            "linkedin": "linkedin.com/in/asharao",
            "github": "github.com/asharao",
        },
        "summary": {"title": "QA Automation Engineer", "text": "Five years testing web and mobile apps."},
        "skills": {"Technical Skills": "Selenium, Appium, Python", "Soft Skills": "Communication"},
        "workExperience": [
            {
                "id": "work-1",
                "company": "Acme Corp",
                "location": "Pune",
                "role": "QA Engineer",
                "startDate": "Jan 2021",
                "endDate": None,
                "isCurrent": True,
                "descriptionPoints": ["Built the regression suite", "Cut release testing to 2 days"],
            }
        ],
        "projects": [],
        "education": [
            {
                "id": "edu-1",
                "institution": "Pune University",
                "degree": "B.E. Computer Engineering",
                "location": "Pune",
                "gpa": "8.1",
                "endDate": "2018",
            }
        ],
    }
