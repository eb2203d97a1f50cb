"""Integration tests for the AppData endpoints

Tests cover:
- Starter document on first read
- Debounced and synchronous saves
- Per-user isolation via X-User-ID
- Validation errors and unreadable stored documents
- Delete and the derived overview
"""

from __future__ import annotations

import json

from lifeos.appdata.repository import AppDataRepository, get_store
from lifeos.infrastructure.database import db_transaction

ALICE = {"X-User-ID": "alice"}
BOB = {"X-User-ID": "bob"}


def test_first_read_returns_starter_document(api_client):
    response = api_client.get("/api/data", headers=ALICE)

    assert response.status_code == 200
    body = response.json()
    assert len(body["goals"]) == 2
    assert body["emergencyFundTarget"] == "40000"
    assert body["lastJobSuggestionCheck"].startswith("1970-01-01")
    assert AppDataRepository.exists("alice")


def test_default_user_without_header(api_client):
    assert api_client.get("/api/data").status_code == 200
    assert AppDataRepository.exists("default")


def test_save_is_visible_immediately_and_written_on_flush(api_client):
    document = api_client.get("/api/data", headers=ALICE).json()
    document["emergencyFund"] = "15000"
    document["goals"][0]["steps"][0]["completed"] = True

    response = api_client.put("/api/data", json=document, headers=ALICE)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["persisted"] is False
    assert "updatedAt" in body

    reread = api_client.get("/api/data", headers=ALICE).json()
    assert reread["emergencyFund"] == "15000"
    assert reread["goals"][0]["steps"][0]["completed"] is True

    get_store().flush()
    assert AppDataRepository.fetch("alice")["emergencyFund"] == "15000"


def test_sync_save_persists_before_responding(api_client):
    document = api_client.get("/api/data", headers=ALICE).json()
    document["carSalePrice"] = "575000"

    response = api_client.put("/api/data?sync=true", json=document, headers=ALICE)

    assert response.json()["persisted"] is True
    assert AppDataRepository.fetch("alice")["carSalePrice"] == "575000"


def test_users_are_isolated(api_client):
    document = api_client.get("/api/data", headers=ALICE).json()
    document["goals"] = []
    api_client.put("/api/data?sync=true", json=document, headers=ALICE)

    assert api_client.get("/api/data", headers=ALICE).json()["goals"] == []
    assert len(api_client.get("/api/data", headers=BOB).json()["goals"]) == 2


def test_unknown_fields_are_preserved(api_client):
    document = api_client.get("/api/data", headers=ALICE).json()
    document["dashboardLayout"] = {"columns": 3}

    api_client.put("/api/data?sync=true", json=document, headers=ALICE)

    assert api_client.get("/api/data", headers=ALICE).json()["dashboardLayout"] == {"columns": 3}


def test_invalid_document_is_rejected_without_details(api_client):
    response = api_client.put("/api/data", json={"goals": [{"category": "Career"}]}, headers=ALICE)

    assert response.status_code == 422
    body = response.json()
    assert body["detail"] == "Invalid request format. Please check your request and try again."
    assert "title" in body["invalid_fields"]


def test_unreadable_stored_document_is_500(api_client):
    with db_transaction() as conn:
        conn.execute("INSERT INTO users (id, data) VALUES (?, ?)", ("alice", "{oops"))

    response = api_client.get("/api/data", headers=ALICE)

    assert response.status_code == 500
    assert response.json()["detail"] == "Stored data could not be read"


def test_delete_then_read_recreates_starter(api_client):
    document = api_client.get("/api/data", headers=ALICE).json()
    document["goals"] = []
    api_client.put("/api/data", json=document, headers=ALICE)

    response = api_client.delete("/api/data", headers=ALICE)
    assert response.json() == {"success": True, "deleted": True}
    assert not AppDataRepository.exists("alice")

    assert len(api_client.get("/api/data", headers=ALICE).json()["goals"]) == 2


def test_delete_unknown_user(api_client):
    assert api_client.delete("/api/data", headers={"X-User-ID": "ghost"}).json()["deleted"] is False


def test_overview(api_client):
    document = api_client.get("/api/data", headers=ALICE).json()
    document["emergencyFund"] = "20000"
    for step in document["goals"][1]["steps"]:
        step["completed"] = True
    api_client.put("/api/data", json=document, headers=ALICE)

    overview = api_client.get("/api/data/overview", headers=ALICE).json()

    assert overview["total_goals"] == 2
    assert overview["goals_completed"] == 1
    assert overview["overall_progress"] == 40
    assert overview["emergency_fund_progress"] == 50.0
    assert overview["monthly_income"] == 50000
    assert len(overview["next_steps"]) == 3


def test_resume_with_null_dates_loads_and_saves(api_client):
    document = {
        "resume": {
            "workExperience": [
                {"company": "Acme Corp", "role": "QA", "startDate": "2021-01-01T00:00:00.000Z", "endDate": None, "isCurrent": True}
            ],
            "projects": [{"name": "Framework", "startDate": None, "endDate": None}],
            "education": [{"institution": "Pune University", "endDate": None}],
        }
    }
    with db_transaction() as conn:
        conn.execute("INSERT INTO users (id, data) VALUES (?, ?)", ("alice", json.dumps(document)))

    response = api_client.get("/api/data", headers=ALICE)
    assert response.status_code == 200
    loaded = response.json()
    assert loaded["resume"]["workExperience"][0]["endDate"] is None
    assert loaded["resume"]["education"][0]["endDate"] is None

    saved = api_client.put("/api/data?sync=true", json=loaded, headers=ALICE)
    assert saved.status_code == 200
    assert AppDataRepository.fetch("alice")["resume"]["projects"][0]["startDate"] is None
