"""Rate limiting middleware for the LifeOS API

Per-IP request limits for every route, plus a tighter limit on AI flow calls
because each one costs a Gemini request.

Security features:
- IP spoofing protection (X-Forwarded-For only trusted behind a known proxy or in development)
- Separate AI-call budget for POST /api/ai/*
- Memory bounded by TTLCache buckets
"""

from __future__ import annotations

import ipaddress
import os
import secrets
import time
from collections.abc import Callable
from typing import Any

from cachetools import TTLCache
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from lifeos.config import RATE_LIMIT_MAX_IPS
from lifeos.observability.telemetry import log_event

EXEMPT_PATHS = ("/health", "/health/db", "/")
AI_PATH_PREFIX = "/api/ai/"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window rate limiting keyed by client IP.

    All requests count against requests_per_minute / requests_per_hour.
    POST requests under /api/ai/ also count against ai_calls_per_minute /
    ai_calls_per_hour.

    For multi-instance deployments this needs a shared store such as Redis.
    """

    def __init__(
        self,
        app: Any,
        requests_per_minute: int = 120,
        requests_per_hour: int = 2000,
        ai_calls_per_minute: int = 20,
        ai_calls_per_hour: int = 300,
        trusted_proxy_header: str = "Fly-Client-IP",
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.ai_calls_per_minute = ai_calls_per_minute
        self.ai_calls_per_hour = ai_calls_per_hour

        # {ip: [timestamp, ...]}; TTLCache evicts idle IPs
        self.minute_buckets: TTLCache[str, list[float]] = TTLCache(maxsize=RATE_LIMIT_MAX_IPS, ttl=120)
        self.hour_buckets: TTLCache[str, list[float]] = TTLCache(maxsize=RATE_LIMIT_MAX_IPS, ttl=7200)
        self.ai_minute_buckets: TTLCache[str, list[float]] = TTLCache(maxsize=RATE_LIMIT_MAX_IPS, ttl=120)
        self.ai_hour_buckets: TTLCache[str, list[float]] = TTLCache(maxsize=RATE_LIMIT_MAX_IPS, ttl=7200)

        # Only trust X-Forwarded-For when the hosting proxy marks the request
        self._trusted_proxy_header = trusted_proxy_header

    def _is_valid_ip(self, ip_str: str) -> bool:
        """Validate that a string is a valid IPv4 or IPv6 address."""
        try:
            ipaddress.ip_address(ip_str)
            return True
        except ValueError:
            return False

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP with spoofing protection.

        X-Forwarded-For is honoured only behind the trusted proxy, or in
        development. Otherwise the socket address is used.
        """
        if self._trusted_proxy_header in request.headers:
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                ip = forwarded.split(",")[0].strip()
                if self._is_valid_ip(ip):
                    return ip

        if os.getenv("LIFEOS_ENV", "development") == "development":
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                ip = forwarded.split(",")[0].strip()
                if self._is_valid_ip(ip):
                    return ip

            real_ip = request.headers.get("X-Real-IP")
            if real_ip and self._is_valid_ip(real_ip):
                return real_ip

        return request.client.host if request.client else "unknown"

    def _clean_old_requests(self, bucket: list[float], max_age_seconds: int) -> list[float]:
        """Remove requests older than max_age_seconds"""
        now = time.time()
        return [ts for ts in bucket if now - ts < max_age_seconds]

    def _cleanup_old_buckets(self) -> None:
        """Drop IPs idle for more than 2 hours."""
        now = time.time()
        max_idle_time = 7200

        ips_to_remove = []
        for ip in list(self.minute_buckets.keys()):
            bucket = self.minute_buckets.get(ip, [])
            if not bucket or now - max(bucket) > max_idle_time:
                ips_to_remove.append(ip)

        for ip in ips_to_remove:
            self.minute_buckets.pop(ip, None)
            self.hour_buckets.pop(ip, None)
            self.ai_minute_buckets.pop(ip, None)
            self.ai_hour_buckets.pop(ip, None)

    def _limited(self, message: str, retry_after: int) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"detail": message, "retry_after": retry_after},
            headers={"Retry-After": str(retry_after)},
        )

    @staticmethod
    def _is_ai_call(request: Request) -> bool:
        return request.method == "POST" and request.url.path.startswith(AI_PATH_PREFIX)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Check rate limits before processing request."""
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        # 1% of requests sweep idle IPs
        if secrets.randbelow(100) == 0:
            self._cleanup_old_buckets()

        client_ip = self._get_client_ip(request)
        now = time.time()

        self.minute_buckets[client_ip] = self._clean_old_requests(
            self.minute_buckets.get(client_ip, []), 60
        )
        self.hour_buckets[client_ip] = self._clean_old_requests(
            self.hour_buckets.get(client_ip, []), 3600
        )

        minute_requests = len(self.minute_buckets.get(client_ip, []))
        if minute_requests >= self.requests_per_minute:
            log_event("api.rate_limit.request_exceeded", ip=client_ip, limit="minute", count=minute_requests)
            return self._limited(
                f"Rate limit exceeded. Maximum {self.requests_per_minute} requests per minute.", 60
            )

        hour_requests = len(self.hour_buckets.get(client_ip, []))
        if hour_requests >= self.requests_per_hour:
            log_event("api.rate_limit.request_exceeded", ip=client_ip, limit="hour", count=hour_requests)
            return self._limited(
                f"Rate limit exceeded. Maximum {self.requests_per_hour} requests per hour.", 3600
            )

        is_ai_call = self._is_ai_call(request)
        if is_ai_call:
            self.ai_minute_buckets[client_ip] = self._clean_old_requests(
                self.ai_minute_buckets.get(client_ip, []), 60
            )
            self.ai_hour_buckets[client_ip] = self._clean_old_requests(
                self.ai_hour_buckets.get(client_ip, []), 3600
            )

            minute_ai = len(self.ai_minute_buckets.get(client_ip, []))
            if minute_ai >= self.ai_calls_per_minute:
                log_event("api.rate_limit.ai_exceeded", ip=client_ip, limit="minute", count=minute_ai)
                return self._limited(
                    f"AI rate limit exceeded. Maximum {self.ai_calls_per_minute} AI requests per minute.",
                    60,
                )

            hour_ai = len(self.ai_hour_buckets.get(client_ip, []))
            if hour_ai >= self.ai_calls_per_hour:
                log_event("api.rate_limit.ai_exceeded", ip=client_ip, limit="hour", count=hour_ai)
                return self._limited(
                    f"AI rate limit exceeded. Maximum {self.ai_calls_per_hour} AI requests per hour.",
                    3600,
                )

        # Record this request (reassign so TTLCache refreshes the entry)
        minute_bucket = self.minute_buckets.get(client_ip, [])
        minute_bucket.append(now)
        self.minute_buckets[client_ip] = minute_bucket

        hour_bucket = self.hour_buckets.get(client_ip, [])
        hour_bucket.append(now)
        self.hour_buckets[client_ip] = hour_bucket

        if is_ai_call:
            ai_minute_bucket = self.ai_minute_buckets.get(client_ip, [])
            ai_minute_bucket.append(now)
            self.ai_minute_buckets[client_ip] = ai_minute_bucket

            ai_hour_bucket = self.ai_hour_buckets.get(client_ip, [])
            ai_hour_bucket.append(now)
            self.ai_hour_buckets[client_ip] = ai_hour_bucket

        response = await call_next(request)

        response.headers["X-RateLimit-Limit-Minute"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining-Minute"] = str(
            self.requests_per_minute - minute_requests - 1
        )
        response.headers["X-RateLimit-Limit-Hour"] = str(self.requests_per_hour)
        response.headers["X-RateLimit-Remaining-Hour"] = str(
            self.requests_per_hour - hour_requests - 1
        )
        if is_ai_call:
            response.headers["X-RateLimit-AI-Remaining-Minute"] = str(
                max(0, self.ai_calls_per_minute - len(self.ai_minute_buckets.get(client_ip, [])))
            )

        return response
