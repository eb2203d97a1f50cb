"""
API startup and shutdown test

Tests that the app validates its schema on startup and writes pending
documents on shutdown.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from lifeos.api.app import app
from lifeos.appdata.repository import AppDataRepository


def test_startup_and_shutdown_flush():
    with TestClient(app) as client:
        assert client.get("/health/db").json()["status"] == "healthy"

        document = client.get("/api/data", headers={"X-User-ID": "alice"}).json()
        document["emergencyFund"] = "9000"
        client.put("/api/data", json=document, headers={"X-User-ID": "alice"})
        assert AppDataRepository.fetch("alice")["emergencyFund"] == "0"

    assert AppDataRepository.fetch("alice")["emergencyFund"] == "9000"
