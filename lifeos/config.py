"""Centralized configuration for the LifeOS backend.

Typed constants for database, data store, LLM, rate limiting, and the
automation server. Environment variable overrides use safe defaults so the
app starts without extra env configuration.
"""

from __future__ import annotations

import os

# --- App ---
APP_VERSION: str = "1.0.0"
APP_ENV: str = os.getenv("LIFEOS_ENV", "development")

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("LIFEOS_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("LIFEOS_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("LIFEOS_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("LIFEOS_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("LIFEOS_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("LIFEOS_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("LIFEOS_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("LIFEOS_DB_RETRY_JITTER", "0.1"))

# --- AppData store ---
APPDATA_CACHE_TTL_SECONDS: float = float(os.getenv("LIFEOS_APPDATA_CACHE_TTL", "300"))
APPDATA_WRITE_DEBOUNCE_SECONDS: float = float(os.getenv("LIFEOS_WRITE_DEBOUNCE", "1.0"))
DEFAULT_EMERGENCY_FUND_TARGET: str = "40000"
JOB_CHECK_HOUR: int = int(os.getenv("LIFEOS_JOB_CHECK_HOUR", "9"))

# --- LLM ---
GEMINI_MODEL: str = os.getenv("LIFEOS_GEMINI_MODEL", "gemini-2.5-pro")
GEMINI_IMAGE_MODEL: str = os.getenv(
    "LIFEOS_GEMINI_IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation"
)
GEMINI_LOCATION: str = os.getenv("GEMINI_LOCATION", "us-central1")
LLM_TIMEOUT_SECONDS: int = int(os.getenv("LIFEOS_LLM_TIMEOUT", "60"))
LLM_MAX_RETRIES: int = int(os.getenv("LIFEOS_LLM_MAX_RETRIES", "3"))
LLM_CACHE_TTL_SECONDS: float = float(os.getenv("LIFEOS_LLM_CACHE_TTL", "86400"))
LLM_CACHE_MAX_ENTRIES: int = int(os.getenv("LIFEOS_LLM_CACHE_MAX_ENTRIES", "1000"))
LLM_USER_DAILY_LIMIT: int = int(os.getenv("LIFEOS_LLM_USER_DAILY_LIMIT", "200"))
LLM_GLOBAL_DAILY_LIMIT: int = int(os.getenv("LIFEOS_LLM_GLOBAL_DAILY_LIMIT", "10000"))

# Gemini models the ad-hoc task endpoint offers, with their input token limits
TASK_MODEL_TOKEN_LIMITS: dict[str, int] = {
    "gemini-2.5-pro": 1048576,
    "gemini-2.5-flash": 1048576,
    "gemini-2.5-flash-lite": 1048576,
    "gemini-2.0-flash": 1048576,
}

# --- Rate Limiting ---
RATE_LIMIT_RPM: int = int(os.getenv("LIFEOS_RATE_LIMIT_RPM", "120"))
RATE_LIMIT_RPH: int = int(os.getenv("LIFEOS_RATE_LIMIT_RPH", "2000"))
RATE_LIMIT_AI_PM: int = int(os.getenv("LIFEOS_RATE_LIMIT_AI_PM", "20"))
RATE_LIMIT_AI_PH: int = int(os.getenv("LIFEOS_RATE_LIMIT_AI_PH", "300"))
RATE_LIMIT_MAX_IPS: int = 10000

# --- Auth ---
AUTH_TOKEN_CACHE_TTL_SECONDS: int = 600
AUTH_TOKEN_CACHE_MAX_SIZE: int = 1000

# --- Images ---
UNSPLASH_RANDOM_PHOTO_URL: str = "https://api.unsplash.com/photos/random"
UNSPLASH_TIMEOUT_SECONDS: float = 10.0

# --- Automation server ---
AUTOMATION_PORT: int = int(os.getenv("PORT", "3003"))
AUTOMATION_ACTION_DELAY_SECONDS: float = float(os.getenv("AUTOMATION_ACTION_DELAY", "2.0"))
AUTOMATION_NAVIGATION_TIMEOUT_MS: int = 30000
AUTOMATION_SELECTOR_TIMEOUT_MS: int = 10000
AUTOMATION_DEFAULT_WAIT_MS: int = 2000
AUTOMATION_TASK_RETENTION_SECONDS: float = float(
    os.getenv("AUTOMATION_TASK_RETENTION", "3600")
)
AUTOMATION_KEEP_ALIVE_INTERVAL_SECONDS: int = 14 * 60
AUTOMATION_VIEWPORT: dict[str, int] = {"width": 1920, "height": 1080}
AUTOMATION_USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
AUTOMATION_ALLOWED_ORIGINS: list[str] = [
    "https://resolve25.vercel.app",
    "http://localhost:3000",
    "http://localhost:9002",
]
AUTOMATION_SERVER_URL: str = os.getenv("AUTOMATION_SERVER_URL", "http://localhost:3003")
# "true"/"false" forces headless mode; unset means headless only in production
AUTOMATION_HEADLESS: str | None = os.getenv("AUTOMATION_HEADLESS")
AUTOMATION_KEEP_ALIVE_ENABLED: bool = os.getenv("ENABLE_KEEP_ALIVE", "false").lower() == "true"
AUTOMATION_BASE_URL: str = os.getenv("BASE_URL", f"http://localhost:{AUTOMATION_PORT}")
