"""Unit tests for rate limiting middleware

Tests cover:
- Requests under limit allowed
- Minute and hour limit enforcement
- Separate AI-call limit for POST /api/ai/*
- Health endpoint bypass
- Per-IP isolation and header parsing
- Memory cleanup
"""

from __future__ import annotations

import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from lifeos.api.middleware.rate_limit import RateLimitMiddleware


def build_app(**limits) -> FastAPI:
    test_app = FastAPI()
    test_app.add_middleware(RateLimitMiddleware, **limits)

    @test_app.get("/api/test")
    async def test_endpoint():
        return {"status": "ok"}

    @test_app.post("/api/ai/goal-tips")
    async def ai_endpoint():
        return {"tips": []}

    @test_app.get("/api/ai")
    async def ai_listing():
        return {"flows": []}

    @test_app.get("/health")
    async def health():
        return {"status": "healthy"}

    return test_app


@pytest.fixture
def app():
    """Create test FastAPI app with rate limiting"""
    # Use low limits for testing
    return build_app(requests_per_minute=5, requests_per_hour=20)


def test_requests_under_limit_allowed(app):
    """Test that requests under the limit are allowed"""
    client = TestClient(app)

    for _ in range(3):
        response = client.get("/api/test")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

        assert response.headers["X-RateLimit-Limit-Minute"] == "5"
        assert "X-RateLimit-Remaining-Minute" in response.headers


def test_minute_limit_enforced(app):
    """Test that minute rate limit is enforced"""
    client = TestClient(app)

    for _ in range(5):
        assert client.get("/api/test").status_code == 200

    response = client.get("/api/test")
    assert response.status_code == 429
    assert "Rate limit exceeded" in response.json()["detail"]
    assert "per minute" in response.json()["detail"]
    assert response.json()["retry_after"] == 60
    assert response.headers["Retry-After"] == "60"


def test_hour_limit_enforced():
    """Test that hour rate limit is enforced"""
    client = TestClient(build_app(requests_per_minute=100, requests_per_hour=3))

    for _ in range(3):
        assert client.get("/api/test").status_code == 200

    response = client.get("/api/test")
    assert response.status_code == 429
    assert "per hour" in response.json()["detail"]
    assert response.json()["retry_after"] == 3600
    assert response.headers["Retry-After"] == "3600"


def test_ai_calls_have_their_own_limit():
    """AI flow calls are capped separately from general traffic"""
    client = TestClient(build_app(requests_per_minute=100, ai_calls_per_minute=2))

    for _ in range(2):
        response = client.post("/api/ai/goal-tips")
        assert response.status_code == 200
        assert "X-RateLimit-AI-Remaining-Minute" in response.headers

    response = client.post("/api/ai/goal-tips")
    assert response.status_code == 429
    assert "AI rate limit exceeded" in response.json()["detail"]

    # Non-AI traffic from the same IP is unaffected
    assert client.get("/api/test").status_code == 200


def test_ai_listing_is_not_an_ai_call():
    """GET /api/ai does not reach the model and does not count"""
    client = TestClient(build_app(requests_per_minute=100, ai_calls_per_minute=1))

    for _ in range(3):
        assert client.get("/api/ai").status_code == 200


def test_ai_hour_limit_enforced():
    client = TestClient(build_app(requests_per_minute=100, ai_calls_per_minute=100, ai_calls_per_hour=1))

    assert client.post("/api/ai/goal-tips").status_code == 200
    response = client.post("/api/ai/goal-tips")
    assert response.status_code == 429
    assert "per hour" in response.json()["detail"]


def test_health_endpoints_bypass_rate_limit(app):
    """Test that health check endpoints bypass rate limiting"""
    client = TestClient(app)

    for _ in range(6):
        client.get("/api/test")

    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_per_ip_isolation(app):
    """Test that rate limits are isolated per IP address"""
    client = TestClient(app)

    for _ in range(5):
        response = client.get("/api/test", headers={"X-Forwarded-For": "192.168.1.1"})
        assert response.status_code == 200

    response = client.get("/api/test", headers={"X-Forwarded-For": "192.168.1.1"})
    assert response.status_code == 429

    response = client.get("/api/test", headers={"X-Forwarded-For": "192.168.1.2"})
    assert response.status_code == 200


def test_rate_limit_headers_accuracy(app):
    """Test that rate limit headers show accurate counts"""
    client = TestClient(app)

    response = client.get("/api/test")
    assert response.headers["X-RateLimit-Remaining-Minute"] == "4"  # 5 - 1 = 4
    assert response.headers["X-RateLimit-Remaining-Hour"] == "19"  # 20 - 1 = 19

    response = client.get("/api/test")
    assert response.headers["X-RateLimit-Remaining-Minute"] == "3"
    assert response.headers["X-RateLimit-Remaining-Hour"] == "18"


def test_x_forwarded_for_header_parsing(app):
    """Test that the first X-Forwarded-For address is used"""
    client = TestClient(app)

    response = client.get(
        "/api/test", headers={"X-Forwarded-For": "203.0.113.1, 198.51.100.1, 192.0.2.1"}
    )
    assert response.status_code == 200

    for _ in range(4):
        client.get("/api/test", headers={"X-Forwarded-For": "203.0.113.1, 10.0.0.1"})

    response = client.get("/api/test", headers={"X-Forwarded-For": "203.0.113.1, 10.0.0.2"})
    assert response.status_code == 429


def test_invalid_forwarded_ip_is_ignored(app):
    """A spoofed non-IP value falls back to the socket address"""
    client = TestClient(app)

    for _ in range(5):
        client.get("/api/test", headers={"X-Forwarded-For": "not-an-ip"})

    # Same socket address, so the bucket is shared
    assert client.get("/api/test").status_code == 429


def test_x_real_ip_header(app):
    """Test that X-Real-IP header is respected in development"""
    client = TestClient(app)

    for _ in range(5):
        response = client.get("/api/test", headers={"X-Real-IP": "198.51.100.42"})
        assert response.status_code == 200

    response = client.get("/api/test", headers={"X-Real-IP": "198.51.100.42"})
    assert response.status_code == 429


def test_memory_cleanup():
    """Test that idle IP addresses are cleaned up to prevent memory growth"""
    test_app = FastAPI()
    middleware = RateLimitMiddleware(test_app.router, requests_per_minute=100, requests_per_hour=1000)

    for i in range(100):
        middleware.minute_buckets[f"192.168.1.{i}"] = [time.time()]
        middleware.hour_buckets[f"192.168.1.{i}"] = [time.time()]

    old_timestamp = time.time() - 10800
    for i in range(50):
        middleware.minute_buckets[f"192.168.2.{i}"] = [old_timestamp]
        middleware.hour_buckets[f"192.168.2.{i}"] = [old_timestamp]
        middleware.ai_minute_buckets[f"192.168.2.{i}"] = [old_timestamp]

    assert len(middleware.minute_buckets) == 150

    middleware._cleanup_old_buckets()

    assert len(middleware.minute_buckets) == 100
    assert len(middleware.ai_minute_buckets) == 0
