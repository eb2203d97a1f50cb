"""Integration tests for the AI endpoints

Tests cover:
- Running registered flows through POST /api/ai/{flow}
- Unknown flows, bad payloads and missing resumes
- Daily budget refusals and model failures
- Critical-steps refresh and reuse
- The daily job suggestion check
"""

from __future__ import annotations

import pytest

from lifeos.appdata.repository import get_store
from lifeos.infrastructure import llm_budget
from lifeos.llm.client import LLMError
from lifeos.llm.errors import NETWORK_MESSAGE
from lifeos.utils.error_sanitizer import sanitize_error_message

ALICE = {"X-User-ID": "alice"}


def critical_step(text: str) -> dict:
    return {
        "text": text,
        "priority": "Urgent",
        "category": "Finance",
        "reasoning": "EMI due on the 5th",
        "timeframe": "Today",
    }


@pytest.fixture
def with_resume(api_client, sample_resume):
    document = api_client.get("/api/data", headers=ALICE).json()
    document["resume"] = sample_resume
    api_client.put("/api/data?sync=true", json=document, headers=ALICE)
    return document


# ---------------------------------------------------------------------------
# Generic flow route
# ---------------------------------------------------------------------------


def test_list_flows(api_client):
    flows = api_client.get("/api/ai").json()["flows"]

    assert len(flows) == 16
    assert "goal-tips" in flows
    assert flows == sorted(flows)


def test_run_goal_tips(api_client, fake_model):
    fake_model.queue({"tips": ["Study at 6am", "Use flashcards"]})

    response = api_client.post(
        "/api/ai/goal-tips", json={"goal": "Pass ISTQB", "obstacle": "No time"}, headers=ALICE
    )

    assert response.status_code == 200
    assert response.json() == {"tips": ["Study at 6am", "Use flashcards"]}


def test_output_uses_camel_case(api_client, fake_model):
    fake_model.queue({"generalTips": "Carry cash", "days": [{"title": "Day 1", "theme": "Ruins", "activities": []}]})

    response = api_client.post("/api/ai/travel-itinerary", json={"destination": "Hampi", "duration": 1})

    assert response.status_code == 200
    assert response.json()["generalTips"] == ["Carry cash"]


def test_unknown_flow_is_404(api_client, fake_model):
    response = api_client.post("/api/ai/horoscope", json={})

    assert response.status_code == 404
    assert response.json()["detail"] == "Unknown AI flow: horoscope"
    assert fake_model.calls == 0


def test_invalid_payload_is_sanitized_422(api_client, fake_model):
    response = api_client.post("/api/ai/goal-tips", json={"goal": "Run 5k"})

    assert response.status_code == 422
    body = response.json()
    assert body["detail"] == "Invalid request format. Please check your request and try again."
    assert body["invalid_fields"] == ["obstacle"]
    assert fake_model.calls == 0


def test_itinerary_duration_out_of_range(api_client, fake_model):
    response = api_client.post("/api/ai/travel-itinerary", json={"destination": "Goa", "duration": 45})

    assert response.status_code == 422
    assert "duration" in response.json()["invalid_fields"]


def test_oversized_payload_is_422(api_client, fake_model):
    response = api_client.post("/api/ai/goal-tips", json={"goal": "x" * 60000, "obstacle": "y"})

    assert response.status_code == 422
    assert fake_model.calls == 0


def test_job_suggestions_without_resume_is_422(api_client, fake_model):
    response = api_client.post("/api/ai/job-suggestions", json={})

    assert response.status_code == 422
    assert fake_model.calls == 0


def test_budget_exhausted_is_429(api_client, fake_model, monkeypatch):
    monkeypatch.setattr(llm_budget, "LLM_USER_DAILY_LIMIT", 0)

    response = api_client.post("/api/ai/goal-tips", json={"goal": "Run 5k", "obstacle": "Knee"}, headers=ALICE)

    assert response.status_code == 429
    assert response.json()["detail"] == "Daily AI usage limit reached. Please try again tomorrow."
    assert response.headers["Retry-After"] == "86400"
    assert fake_model.calls == 0


def test_calls_are_counted_per_user(api_client, fake_model, monkeypatch):
    monkeypatch.setattr(llm_budget, "LLM_USER_DAILY_LIMIT", 1)
    fake_model.queue({"tips": ["a"]}, {"tips": ["b"]})

    first = api_client.post("/api/ai/goal-tips", json={"goal": "A", "obstacle": "B"}, headers=ALICE)
    second = api_client.post("/api/ai/goal-tips", json={"goal": "C", "obstacle": "D"}, headers=ALICE)
    other_user = api_client.post(
        "/api/ai/goal-tips", json={"goal": "C", "obstacle": "D"}, headers={"X-User-ID": "bob"}
    )

    assert first.status_code == 200
    assert second.status_code == 429
    assert other_user.status_code == 200


def test_model_failure_is_502(api_client, fake_model):
    fake_model.queue(LLMError("NETWORK_ERROR: connection reset"))

    response = api_client.post("/api/ai/goal-tips", json={"goal": "Run 5k", "obstacle": "Knee"})

    assert response.status_code == 502
    assert response.json()["detail"] == sanitize_error_message(NETWORK_MESSAGE, 502)


def test_relocation_advice_with_fractional_score(api_client, fake_model):
    fake_model.queue(
        {"recommendations": [{"country": "Portugal", "suitabilityScore": 87.5, "summary": "Mild climate"}]}
    )

    response = api_client.post(
        "/api/ai/relocation-advice",
        json={"questionnaire": {"currentProfession": "QA Engineer", "familySize": 2}},
    )

    assert response.status_code == 200
    assert response.json()["recommendations"][0]["suitabilityScore"] == 87.5


# ---------------------------------------------------------------------------
# Critical steps
# ---------------------------------------------------------------------------


def test_critical_steps_generated_then_reused(api_client, fake_model):
    fake_model.queue({"steps": [critical_step("Pay the car EMI")]})

    first = api_client.post("/api/ai/critical-steps/refresh", headers=ALICE)
    assert first.status_code == 200
    body = first.json()
    assert body["generated"] is True
    assert body["steps"][0]["text"] == "Pay the car EMI"
    assert len(body["dataHash"]) == 64

    second = api_client.post("/api/ai/critical-steps/refresh", headers=ALICE).json()
    assert second["generated"] is False
    assert second["dataHash"] == body["dataHash"]
    assert fake_model.calls == 1

    stored = api_client.get("/api/data", headers=ALICE).json()
    assert stored["criticalSteps"]["steps"][0]["text"] == "Pay the car EMI"


def test_critical_steps_regenerated_after_data_change(api_client, fake_model):
    fake_model.queue({"steps": [critical_step("Pay the car EMI")]}, {"steps": [critical_step("Top up fund")]})
    api_client.post("/api/ai/critical-steps/refresh", headers=ALICE)

    document = api_client.get("/api/data", headers=ALICE).json()
    document["emergencyFund"] = "5000"
    api_client.put("/api/data", json=document, headers=ALICE)

    body = api_client.post("/api/ai/critical-steps/refresh", headers=ALICE).json()
    assert body["generated"] is True
    assert body["steps"][0]["text"] == "Top up fund"


def test_critical_steps_force(api_client, fake_model):
    fake_model.queue({"steps": [critical_step("Pay the car EMI")]})
    api_client.post("/api/ai/critical-steps/refresh", headers=ALICE)

    body = api_client.post("/api/ai/critical-steps/refresh?force=true", headers=ALICE).json()

    assert body["generated"] is True


# ---------------------------------------------------------------------------
# Daily job check
# ---------------------------------------------------------------------------


def test_daily_check_without_resume_does_nothing(api_client, fake_model):
    body = api_client.post("/api/jobs/daily-check?force=true", headers=ALICE).json()

    assert body["ran"] is False
    assert body["added"] == []
    assert fake_model.calls == 0


def test_daily_check_adds_suggestions(api_client, fake_model, with_resume):
    fake_model.queue(
        {
            "suggestions": [
                {"company": "Globex", "role": "SDET", "reasoning": "Selenium"},
                {"company": "Initech", "role": "QA Lead", "reasoning": "Leads a team"},
            ]
        }
    )

    body = api_client.post("/api/jobs/daily-check?force=true", headers=ALICE).json()

    assert body["ran"] is True
    assert [job["company"] for job in body["added"]] == ["Globex", "Initech"]
    assert not body["lastCheck"].startswith("1970")

    stored = api_client.get("/api/data", headers=ALICE).json()
    assert [job["company"] for job in stored["jobApplications"][:2]] == ["Globex", "Initech"]
    assert stored["jobApplications"][0]["status"] == "Need to Apply"


def test_daily_check_skips_tracked_jobs(api_client, fake_model, with_resume):
    document = api_client.get("/api/data", headers=ALICE).json()
    document["jobApplications"] = [
        {"date": "2025-07-01", "company": "globex", "role": "sdet", "status": "Applied"}
    ]
    api_client.put("/api/data", json=document, headers=ALICE)
    fake_model.queue({"suggestions": [{"company": "Globex", "role": "SDET", "reasoning": "Selenium"}]})

    body = api_client.post("/api/jobs/daily-check?force=true", headers=ALICE).json()

    assert body["ran"] is True
    assert body["added"] == []
    get_store().flush()
    assert len(api_client.get("/api/data", headers=ALICE).json()["jobApplications"]) == 1
